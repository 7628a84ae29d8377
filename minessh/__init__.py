"""
minessh - LLM-driven automation for interactive SSH sessions.

The model's replies are parsed for a single directive (run a command or
write a file), the directive is executed on a live shell session, completion
is detected from the raw terminal stream, and the output is fed back to the
model until it answers without a directive or the operator stops it.
"""

__version__ = "1.0.0"
__author__ = "minessh Team"

# Main API imports
from .core.application import MineSSH, create_application
from .core.orchestrator import Orchestrator
from .core.detector import CompletionDetector
from .llm.parsers import parse_directive
from .config.manager import ConfigManager, create_config_manager

__all__ = [
    "MineSSH",
    "create_application",
    "Orchestrator",
    "CompletionDetector",
    "parse_directive",
    "ConfigManager",
    "create_config_manager",
    "__version__",
]
