"""Data types shared by the automation loop."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class Role(Enum):
    """Speaker of a transcript entry."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class OrchestratorState(Enum):
    """Automation loop state for one session."""
    IDLE = "Idle"
    AWAITING_MODEL = "AwaitingModel"
    AWAITING_COMPLETION = "AwaitingCompletion"
    STOPPED = "Stopped"


@dataclass
class ChatMessage:
    """One transcript entry. Hidden entries reach the model but are not rendered."""
    role: Role
    content: str
    hidden: bool = False


@dataclass(frozen=True)
class RunCommand:
    """Send a line of input to the shell. Empty text sends Enter only."""
    text: str


@dataclass(frozen=True)
class WriteFile:
    """Write ``content`` to ``path`` on the remote host."""
    path: str
    content: str


# A reply without a directive is represented by ``None``
Directive = Union[RunCommand, WriteFile]


@dataclass(frozen=True)
class ExecutionRequest:
    """A directive dispatched to a session under a given generation."""
    generation: int
    directive: Directive
    session_id: str


@dataclass(frozen=True)
class CompletionResult:
    """Output captured for one armed window."""
    output: str
    timed_out: bool = False


@dataclass(frozen=True)
class Persona:
    """Operator-selectable role text folded into the system prompt."""
    id: str
    title: str
    content: str

    def to_dict(self) -> dict:
        return {"id": self.id, "title": self.title, "content": self.content}


@dataclass(frozen=True)
class ModelParams:
    """Connection parameters handed to the model gateway on every call."""
    provider: str
    base_url: str
    model: str = ""
    api_key: Optional[str] = None
