"""Configuration management for minessh."""

from .manager import ConfigManager, create_config_manager
from .templates import (
    CONFIG_TEMPLATE,
    DEFAULT_BASE_PROMPT,
    DEFAULT_OPERATING_INSTRUCTIONS,
    DEFAULT_PERSONAS,
)

__all__ = [
    "ConfigManager",
    "create_config_manager",
    "CONFIG_TEMPLATE",
    "DEFAULT_BASE_PROMPT",
    "DEFAULT_OPERATING_INSTRUCTIONS",
    "DEFAULT_PERSONAS",
]
