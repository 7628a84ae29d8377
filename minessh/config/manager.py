"""Configuration manager for minessh."""

from typing import Dict, Any, List, Optional
from pathlib import Path
import sys
import tempfile
import shutil

import yaml

from ..constants import (
    CONFIG_DIR, CONFIG_FILE_NAME, PROVIDERS, DEFAULT_PROVIDER, DEFAULT_BASE_URL, DEFAULT_MODEL,
    DEFAULT_REQUEST_TIMEOUT, DEFAULT_AUTO_RUN, DEFAULT_ENABLE_DEBUG,
    DEFAULT_QUIESCENCE_SECONDS, DEFAULT_TICK_INTERVAL, DEFAULT_SSH_PORT
)
from ..models import ModelParams, Persona
from ..utils.logging import logger
from ..utils.helpers import safe_file_write
from .templates import (
    CONFIG_TEMPLATE, DEFAULT_BASE_PROMPT, DEFAULT_OPERATING_INSTRUCTIONS, DEFAULT_PERSONAS
)


class ConfigManager:
    """Manages configuration loading, validation, and persistence for minessh."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize the configuration manager.

        Args:
            config_dir: Custom configuration directory path
        """
        self.config_dir = config_dir or CONFIG_DIR
        self.config_file = self.config_dir / CONFIG_FILE_NAME

        self._config: Optional[Dict[str, Any]] = None

    def initialize(self) -> bool:
        """Initialize configuration by setting up files and loading config.

        Returns:
            True if initialization successful, False if setup files were created
        """
        if not self._perform_initial_setup():
            return False

        self._config = self._load_config()
        return True

    def _perform_initial_setup(self) -> bool:
        """Creates config directory and the config template if missing.

        Returns:
            True if no setup was needed, False if the template was created
        """
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            if self.config_file.exists():
                return True

            if safe_file_write(self.config_file, CONFIG_TEMPLATE, "config template"):
                logger.system(f"Configuration template generated: {self.config_file}")
                logger.system("Please review provider, base_url and model before running minessh again.")
            return False

        except Exception as e:
            logger.error(f"Failed during initial setup: {e}")
            return False

    def _load_config(self) -> Dict[str, Any]:
        """Load and validate the configuration file."""
        if not self.config_file.exists():
            logger.error(f"Configuration file not found: {self.config_file}")
            logger.error("Run minessh once to generate a config template, or use --config-dir for custom location.")
            sys.exit(1)

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML file {self.config_file}: {e}")
            sys.exit(1)
        except IOError as e:
            logger.error(f"Could not read {self.config_file}: {e}")
            sys.exit(1)

        if config_data is None:
            config_data = {}
        if not isinstance(config_data, dict):
            logger.error(f"{self.config_file} is not a valid YAML dictionary.")
            sys.exit(1)

        return self._validate(config_data)

    def _validate(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Fill defaults and check value types."""
        provider = config_data.get("provider") or DEFAULT_PROVIDER
        if provider not in PROVIDERS:
            logger.error(f"provider in {self.config_file} must be one of {PROVIDERS}, got '{provider}'.")
            sys.exit(1)
        config_data["provider"] = provider

        config_data["base_url"] = str(config_data.get("base_url") or DEFAULT_BASE_URL)
        config_data["model"] = str(config_data.get("model") or "")
        config_data["api_key"] = config_data.get("api_key") or None

        timeout = config_data.get("request_timeout", DEFAULT_REQUEST_TIMEOUT)
        if not (isinstance(timeout, int) and not isinstance(timeout, bool) and timeout >= 0):
            logger.error(f"request_timeout ('{timeout}') in {self.config_file} must be a non-negative integer.")
            sys.exit(1)
        config_data["request_timeout"] = timeout

        for key, default in (("quiescence_seconds", DEFAULT_QUIESCENCE_SECONDS),
                             ("tick_interval", DEFAULT_TICK_INTERVAL)):
            value = config_data.get(key, default)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                logger.error(f"{key} ('{value}') in {self.config_file} must be a positive number.")
                sys.exit(1)
            config_data[key] = float(value)

        for key, default in (("auto_run", DEFAULT_AUTO_RUN), ("enable_debug", DEFAULT_ENABLE_DEBUG)):
            value = config_data.get(key, default)
            if not isinstance(value, bool):
                logger.warning(f"{key} in {self.config_file} must be true/false. Defaulting to {str(default).lower()}.")
                value = default
            config_data[key] = value

        config_data["personas"] = self._validate_personas(config_data.get("personas"))
        active = config_data.get("active_persona")
        config_data["active_persona"] = str(active) if active is not None else None

        config_data["base_prompt"] = config_data.get("base_prompt") or DEFAULT_BASE_PROMPT
        config_data["operating_instructions"] = (
            config_data.get("operating_instructions") or DEFAULT_OPERATING_INSTRUCTIONS
        )

        connection = config_data.get("connection") or {}
        if not isinstance(connection, dict):
            logger.warning(f"'connection' in {self.config_file} is not a map. Ignoring it.")
            connection = {}
        connection.setdefault("host", "")
        connection.setdefault("username", "")
        connection["port"] = int(connection.get("port") or DEFAULT_SSH_PORT)
        config_data["connection"] = connection

        logger.debug(f"Configuration loaded successfully from {self.config_file}")
        return config_data

    def _validate_personas(self, raw: Any) -> List[Dict[str, str]]:
        if raw is None:
            return [dict(p) for p in DEFAULT_PERSONAS]
        if not isinstance(raw, list):
            logger.warning(f"'personas' in {self.config_file} is not a list. Using built-in personas.")
            return [dict(p) for p in DEFAULT_PERSONAS]

        personas = []
        for entry in raw:
            if not isinstance(entry, dict) or not all(entry.get(k) for k in ("id", "title", "content")):
                logger.warning(f"Skipping malformed persona entry: {entry!r}")
                continue
            personas.append({"id": str(entry["id"]), "title": str(entry["title"]), "content": str(entry["content"])})
        return personas

    @property
    def config(self) -> Dict[str, Any]:
        """Get the current configuration."""
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call initialize() first.")
        return self._config.copy()

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call initialize() first.")
        return self._config.get(key, default)

    def reload(self) -> None:
        """Reload the configuration from disk."""
        self._config = self._load_config()

    @property
    def personas(self) -> List[Persona]:
        return [Persona(**p) for p in self.get("personas", [])]

    @property
    def model_params(self) -> ModelParams:
        return ModelParams(
            provider=self.get("provider"),
            base_url=self.get("base_url"),
            model=self.get("model") or (DEFAULT_MODEL if self.get("provider") == "ollama" else ""),
            api_key=self.get("api_key"),
        )

    def save_personas(self, personas: List[Persona], active_persona: Optional[str]) -> bool:
        """Write the persona library back to the config file.

        Other keys in the file are preserved; comments are not.
        """
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                on_disk = yaml.safe_load(f) or {}
        except (yaml.YAMLError, IOError) as e:
            logger.error(f"Could not read {self.config_file} before saving personas: {e}")
            return False

        on_disk["personas"] = [p.to_dict() for p in personas]
        on_disk["active_persona"] = active_persona

        try:
            with tempfile.NamedTemporaryFile('w', delete=False, dir=self.config_dir,
                                             suffix='.yaml', encoding='utf-8') as tmp_f:
                yaml.safe_dump(on_disk, tmp_f, allow_unicode=True, sort_keys=False)
                temp_name = tmp_f.name
            shutil.move(temp_name, str(self.config_file))
        except Exception as e:
            logger.error(f"Failed to save personas to {self.config_file}: {e}")
            if 'temp_name' in locals() and Path(temp_name).exists():
                Path(temp_name).unlink()
            return False

        if self._config is not None:
            self._config["personas"] = on_disk["personas"]
            self._config["active_persona"] = active_persona
        logger.debug(f"Saved {len(personas)} personas to {self.config_file}")
        return True


def create_config_manager(config_dir: Optional[Path] = None) -> ConfigManager:
    """Create and initialize a configuration manager.

    Args:
        config_dir: Custom configuration directory path

    Returns:
        Initialized ConfigManager instance
    """
    manager = ConfigManager(config_dir)
    if not manager.initialize():
        logger.system("Configuration setup required. Please configure the generated file and run again.")
        sys.exit(0)
    return manager
