"""Main application class for minessh."""

import asyncio
import signal
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..commands.executor import create_directive_executor
from ..config.manager import create_config_manager
from ..llm.client import create_model_gateway
from ..llm.context import ContextBuilder
from ..session.transport import create_ssh_transport
from ..utils.helpers import check_dependencies
from ..utils.logging import logger
from ..models import ChatMessage, OrchestratorState, Persona
from .orchestrator import Orchestrator
from .personas import PersonaLibrary


class MineSSH:
    """Wires configuration, model gateway, SSH transport and one orchestrator per session."""

    def __init__(self, config_dir: Optional[str] = None, debug: bool = False,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        """Initialize the minessh application.

        Args:
            config_dir: Custom configuration directory path
            debug: Enable debug logging
            loop: Event loop that session output is delivered on
        """
        logger.set_debug(debug)

        config_path = Path(config_dir) if config_dir else None
        self.config_manager = create_config_manager(config_path)
        self.config = self.config_manager.config

        if not debug and self.config.get("enable_debug", False):
            logger.set_debug(True)

        check_dependencies()

        self.gateway = create_model_gateway(self.config["request_timeout"])
        self.transport = create_ssh_transport(loop)
        self.executor = create_directive_executor(self.transport)
        self.context_builder = ContextBuilder(self.config["base_prompt"], self.config["operating_instructions"])
        self.personas = PersonaLibrary(
            self.config_manager.personas,
            self.config.get("active_persona"),
            on_change=self.config_manager.save_personas,
        )

        self.orchestrators: Dict[str, Orchestrator] = {}
        self._unsubscribers: Dict[str, Callable[[], None]] = {}
        self.transport.on_closed(self._session_closed)

        logger.debug("Application initialization complete")

    async def connect(self, host: str, port: int, username: str, password: Optional[str] = None,
                      key_filename: Optional[str] = None) -> str:
        """Open an SSH session and attach an orchestrator to it."""
        loop = asyncio.get_running_loop()
        session_id = await loop.run_in_executor(
            None, self.transport.connect, host, port, username, password, key_filename
        )
        self.attach(session_id)
        return session_id

    def attach(self, session_id: str,
               on_message: Optional[Callable[[ChatMessage], None]] = None,
               on_state: Optional[Callable[[OrchestratorState], None]] = None) -> Orchestrator:
        """Create (or return) the orchestrator for a session and route its output to it."""
        orchestrator = self.orchestrators.get(session_id)
        if orchestrator is not None:
            orchestrator.on_message = on_message or orchestrator.on_message
            orchestrator.on_state = on_state or orchestrator.on_state
            return orchestrator

        orchestrator = Orchestrator(
            session_id,
            self.gateway,
            self.executor,
            self.context_builder,
            self.personas,
            self.config_manager.model_params,
            auto_run=self.config["auto_run"],
            quiescence_seconds=self.config["quiescence_seconds"],
            tick_interval=self.config["tick_interval"],
            on_message=on_message,
            on_state=on_state,
        )
        self.orchestrators[session_id] = orchestrator
        self._unsubscribers[session_id] = self.transport.on_data(session_id, orchestrator.handle_data)
        return orchestrator

    def orchestrator(self, session_id: str) -> Orchestrator:
        if session_id not in self.orchestrators:
            raise KeyError(f"No session {session_id}")
        return self.orchestrators[session_id]

    def send_user_message(self, session_id: str, text: str) -> Optional[asyncio.Task]:
        return self.orchestrator(session_id).send_user_message(text)

    def stop(self, session_id: str) -> None:
        self.orchestrator(session_id).stop()

    def set_auto_run(self, session_id: str, enabled: bool) -> None:
        self.orchestrator(session_id).set_auto_run(enabled)

    def select_persona(self, session_id: str, persona_id: str) -> None:
        self.orchestrator(session_id).select_persona(persona_id)

    def add_persona(self, title: str, content: str) -> Optional[Persona]:
        return self.personas.add(title, content)

    def delete_persona(self, persona_id: str) -> bool:
        return self.personas.delete(persona_id)

    async def list_models(self) -> List[str]:
        return await self.gateway.list_models(self.config_manager.model_params)

    def disconnect(self, session_id: str) -> None:
        self.transport.disconnect(session_id)
        self._detach(session_id)

    def shutdown(self) -> None:
        for session_id in set(self.orchestrators) | set(self.transport.sessions()):
            self.disconnect(session_id)

    def _session_closed(self, session_id: str) -> None:
        if session_id in self.orchestrators:
            logger.warning(f"Session {session_id} closed by remote host")
            self._detach(session_id)

    def _detach(self, session_id: str) -> None:
        unsubscribe = self._unsubscribers.pop(session_id, None)
        if unsubscribe:
            unsubscribe()
        orchestrator = self.orchestrators.pop(session_id, None)
        if orchestrator:
            orchestrator.close()

    def setup_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        """Close every session on SIGTERM/SIGHUP."""
        def handle_signal(sig):
            logger.system(f"Received signal {sig}, shutting down gracefully...")
            self.shutdown()
            loop.stop()

        for name in ("SIGTERM", "SIGHUP"):
            sig = getattr(signal, name, None)
            if sig is None:
                continue
            try:
                loop.add_signal_handler(sig, handle_signal, sig)
            except NotImplementedError:
                # Windows event loops do not support signal handlers
                pass

    def get_config_summary(self) -> dict:
        """Get a summary of the current configuration."""
        return {
            "provider": self.config.get("provider"),
            "base_url": self.config.get("base_url"),
            "model": self.config_manager.model_params.model or "(provider default)",
            "auto_run": self.config.get("auto_run"),
            "quiescence_seconds": self.config.get("quiescence_seconds"),
            "enable_debug": self.config.get("enable_debug"),
            "active_persona": self.personas.active.title if self.personas.active else "(none)",
            "personas_count": len(self.personas.personas),
        }

    def print_config_summary(self) -> None:
        """Print a summary of the current configuration."""
        logger.system("Configuration Summary:")
        for key, value in self.get_config_summary().items():
            logger.system(f"  {key}: {value}")


def create_application(config_dir: Optional[str] = None, debug: bool = False,
                       loop: Optional[asyncio.AbstractEventLoop] = None) -> MineSSH:
    """Create and initialize a MineSSH application instance."""
    return MineSSH(config_dir, debug, loop)
