"""Conversation context assembly for model calls."""

from typing import Dict, Iterable, List, Optional

from ..config.templates import DEFAULT_BASE_PROMPT, DEFAULT_OPERATING_INSTRUCTIONS
from ..models import ChatMessage, Persona, Role
from ..utils.logging import logger


# Transcript role -> role understood by the chat endpoints. Transcript
# system notes (errors, stop notices, observations) are spoken by the requester.
GATEWAY_ROLES = {
    Role.USER: Role.USER,
    Role.ASSISTANT: Role.ASSISTANT,
    Role.SYSTEM: Role.USER,
}

FOLLOW_UP_TEMPLATE = (
    "Command executed. Output:\n{output}\n\n"
    "Please analyze the output. Is the original task fully completed and VERIFIED? \n"
    "- If NO: Provide the next command in <run> tags.\n"
    "- If YES: Provide a final summary."
)

FOLLOW_UP_TIMEOUT_WARNING = (
    "\n\n[System Warning]: The command timed out and might be waiting for input. "
    "If so, provide ONLY the input value (e.g. <run>yes</run> or <run>2</run>) "
    "to interact with the running process."
)

OBSERVATION_TIMEOUT_WARNING = (
    "\n\n[System Warning]: Output capture timed out ({seconds:g}s). The command might be "
    "interactive (waiting for input) or simply slow. If it's waiting for input "
    "(e.g. [y/n], selection number), please provide the input in <run> tags "
    "(e.g. <run>2</run> or <run>y</run>). DO NOT wrap the input in echo or pipe "
    "if the command is already running."
)


class ConversationContext:
    """Ordered messages for one model call.

    Element 0 is always the single system message holding the current
    system prompt.
    """

    def __init__(self, system_prompt: str, messages: Optional[Iterable[ChatMessage]] = None):
        self.messages: List[ChatMessage] = [ChatMessage(Role.SYSTEM, system_prompt)]
        for message in messages or []:
            self.append(message.role, message.content)

    @property
    def system_prompt(self) -> str:
        return self.messages[0].content

    def set_system_prompt(self, prompt: str) -> None:
        """Replace element 0 instead of stacking another system message."""
        if self.messages and self.messages[0].role == Role.SYSTEM:
            self.messages[0] = ChatMessage(Role.SYSTEM, prompt)
        else:
            self.messages.insert(0, ChatMessage(Role.SYSTEM, prompt))

    def append(self, role: Role, content: str) -> None:
        self.messages.append(ChatMessage(GATEWAY_ROLES[role], content))

    def to_payload(self) -> List[Dict[str, str]]:
        """Messages in the ``{"role", "content"}`` shape the chat endpoints accept."""
        return [{"role": m.role.value, "content": m.content} for m in self.messages]

    def __len__(self) -> int:
        return len(self.messages)


class ContextBuilder:
    """Builds the conversation sent to the model gateway.

    The system prompt is ``base_prompt`` + the active persona's text + the
    operating instructions. Both text blocks are injected so the builder
    does not depend on any particular wording.
    """

    def __init__(self,
                 base_prompt: str = DEFAULT_BASE_PROMPT,
                 operating_instructions: str = DEFAULT_OPERATING_INSTRUCTIONS):
        self.base_prompt = base_prompt
        self.operating_instructions = operating_instructions

    def system_prompt(self, persona: Optional[Persona]) -> str:
        persona_text = persona.content if persona else ""
        return f"{self.base_prompt} {persona_text}".rstrip() + f"\n\n{self.operating_instructions.strip()}\n"

    def build(self,
              transcript: Iterable[ChatMessage],
              persona: Optional[Persona] = None,
              extra_user_turn: Optional[str] = None) -> ConversationContext:
        """Map the transcript to gateway roles and put the system prompt first."""
        context = ConversationContext(self.system_prompt(persona), transcript)
        if extra_user_turn is not None:
            context.append(Role.USER, extra_user_turn)
        logger.debug(f"Built context with {len(context)} messages")
        return context


def build_follow_up(output: str, timed_out: bool) -> str:
    """User turn that relays command output back to the model."""
    content = FOLLOW_UP_TEMPLATE.format(output=output)
    if timed_out:
        content += FOLLOW_UP_TIMEOUT_WARNING
    return content


def build_observation(output: str, timed_out: bool, quiescence_seconds: float) -> str:
    """Transcript note recording what a directive produced."""
    content = f"Output:\n{output}"
    if timed_out:
        content += OBSERVATION_TIMEOUT_WARNING.format(seconds=quiescence_seconds)
    return content
