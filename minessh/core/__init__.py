"""Core automation loop for minessh."""

from .detector import CompletionDetector
from ..models import (
    ChatMessage,
    CompletionResult,
    Directive,
    ExecutionRequest,
    ModelParams,
    OrchestratorState,
    Persona,
    Role,
    RunCommand,
    WriteFile,
)
from .orchestrator import Orchestrator
from .personas import PersonaLibrary

__all__ = [
    "CompletionDetector",
    "ChatMessage",
    "CompletionResult",
    "Directive",
    "ExecutionRequest",
    "ModelParams",
    "OrchestratorState",
    "Persona",
    "Role",
    "RunCommand",
    "WriteFile",
    "Orchestrator",
    "PersonaLibrary",
]
