"""Execution orchestrator: the per-session automation loop.

State machine::

    Idle/Stopped --user message--> AwaitingModel
    AwaitingModel --reply with directive--> AwaitingCompletion
    AwaitingModel --final answer / gateway error--> Idle
    AwaitingCompletion --result, auto-run on--> AwaitingModel
    AwaitingCompletion --result, auto-run off--> Idle
    any --stop--> Stopped

All state is owned by the orchestrator and mutated only on the event loop
thread. Model calls and completion windows capture the generation they
were issued under; ``stop`` bumps the generation so anything that arrives
late is dropped instead of being applied.
"""

import asyncio
import codecs
import time
from typing import Callable, List, Optional, Union

from ..commands.executor import DirectiveExecutor
from ..constants import DEFAULT_QUIESCENCE_SECONDS, DEFAULT_TICK_INTERVAL, STOP_MESSAGE
from ..llm.client import GatewayError, ModelGateway
from ..llm.context import ContextBuilder, build_follow_up, build_observation
from ..llm.parsers import parse_directive
from ..session.transport import TransportError
from ..utils.helpers import clip_text
from ..utils.logging import logger
from .detector import CompletionDetector
from ..models import (
    ChatMessage, CompletionResult, Directive, ExecutionRequest, ModelParams,
    OrchestratorState, Role
)
from .personas import PersonaLibrary


class Orchestrator:
    """Drives model calls and directive execution for one session."""

    def __init__(self,
                 session_id: str,
                 gateway: ModelGateway,
                 executor: DirectiveExecutor,
                 context_builder: ContextBuilder,
                 personas: PersonaLibrary,
                 model_params: ModelParams,
                 auto_run: bool = True,
                 quiescence_seconds: float = DEFAULT_QUIESCENCE_SECONDS,
                 tick_interval: float = DEFAULT_TICK_INTERVAL,
                 clock: Callable[[], float] = time.monotonic,
                 on_message: Optional[Callable[[ChatMessage], None]] = None,
                 on_state: Optional[Callable[[OrchestratorState], None]] = None):
        self.session_id = session_id
        self.gateway = gateway
        self.executor = executor
        self.context_builder = context_builder
        self.personas = personas
        self.model_params = model_params
        self.auto_run = auto_run
        self.tick_interval = tick_interval
        self.on_message = on_message
        self.on_state = on_state

        self.detector = CompletionDetector(quiescence_seconds, clock)
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.state = OrchestratorState.IDLE
        self.generation = 0
        self.transcript: List[ChatMessage] = []
        self.live_request: Optional[ExecutionRequest] = None
        self.current_directive: Optional[str] = None

        self._model_task: Optional[asyncio.Task] = None
        self._ticker: Optional[asyncio.Task] = None

    # Host-facing operations

    def send_user_message(self, text: str) -> Optional[asyncio.Task]:
        """Start a model turn for operator input.

        Returns the task resolving the model call, or None when the input is
        empty or the session is still busy with a previous turn.
        """
        if not text.strip():
            return None
        if self.busy:
            logger.warning(f"[{self.session_id}] Still working on the previous request; use stop first")
            return None

        self._append(Role.USER, text)
        return self._request_model()

    def stop(self) -> None:
        """Cancel the current task cooperatively.

        In-flight model calls are left to finish; their results no longer
        match the generation and are discarded.
        """
        self.generation += 1
        self.detector.disarm()
        self.live_request = None
        self.current_directive = None
        self._stop_ticker()
        self.auto_run = False
        self._append(Role.SYSTEM, STOP_MESSAGE)
        self._set_state(OrchestratorState.STOPPED)
        logger.debug(f"[{self.session_id}] Stopped, generation now {self.generation}")

    def set_auto_run(self, enabled: bool) -> None:
        self.auto_run = enabled
        logger.debug(f"[{self.session_id}] Auto-run {'enabled' if enabled else 'disabled'}")

    def select_persona(self, persona_id: str) -> None:
        """Switch persona; later model calls use the new system prompt."""
        persona = self.personas.select(persona_id)
        self._append(Role.SYSTEM, f"Switched persona to: {persona.title}")

    def messages(self, include_hidden: bool = False) -> List[ChatMessage]:
        return [m for m in self.transcript if include_hidden or not m.hidden]

    @property
    def busy(self) -> bool:
        return self.state in (OrchestratorState.AWAITING_MODEL, OrchestratorState.AWAITING_COMPLETION)

    # Stream input

    def handle_data(self, data: Union[bytes, str]) -> None:
        """Feed remote output into the completion detector."""
        if isinstance(data, bytes):
            data = self._decoder.decode(data)
        result = self.detector.feed(data)
        if result is not None:
            self._complete(result)

    def tick(self, now: Optional[float] = None) -> None:
        """Check the silence timer of the armed window."""
        result = self.detector.tick(now)
        if result is not None:
            self._complete(result)

    def close(self) -> None:
        """Release timers. Pending model calls are left to resolve and be discarded."""
        self.generation += 1
        self.detector.disarm()
        self._stop_ticker()

    # Model turn

    def _request_model(self, follow_up: Optional[str] = None,
                       history: Optional[List[ChatMessage]] = None) -> asyncio.Task:
        self._set_state(OrchestratorState.AWAITING_MODEL)
        if history is None:
            history = self.transcript
        context = self.context_builder.build(history, self.personas.active, follow_up)
        self._model_task = asyncio.ensure_future(self._call_model(self.generation, context))
        return self._model_task

    async def _call_model(self, generation: int, context) -> None:
        try:
            reply = await self.gateway.chat(context, self.model_params)
        except GatewayError as e:
            if generation != self.generation:
                logger.debug(f"[{self.session_id}] Dropping gateway error from generation {generation}")
                return
            logger.error(f"[{self.session_id}] Model request failed: {e}")
            self._append(Role.SYSTEM, f"Error: {e}")
            self._set_state(OrchestratorState.IDLE)
            return
        except Exception as e:
            if generation != self.generation:
                return
            logger.error(f"[{self.session_id}] Unexpected error during model request: {e}")
            self._append(Role.SYSTEM, f"Error: {e}")
            self._set_state(OrchestratorState.IDLE)
            return

        if generation != self.generation:
            logger.debug(f"[{self.session_id}] Dropping model reply from generation {generation}")
            return

        self._handle_reply(reply.content)

    def _handle_reply(self, content: str) -> None:
        self._append(Role.ASSISTANT, content)
        logger.assistant(clip_text(content, 2000))

        directive = parse_directive(content)
        if directive is None:
            self._set_state(OrchestratorState.IDLE)
            return
        self._dispatch(directive)

    # Directive execution

    def _dispatch(self, directive: Directive) -> None:
        request = ExecutionRequest(self.generation, directive, self.session_id)
        # Armed before writing so the command's first output is captured
        self.detector.arm()
        try:
            status = self.executor.execute(self.session_id, directive)
        except TransportError as e:
            self.detector.disarm()
            logger.error(f"[{self.session_id}] Could not send directive: {e}")
            self._append(Role.SYSTEM, f"Error: {e}")
            self._set_state(OrchestratorState.IDLE)
            return

        self.live_request = request
        self.current_directive = status
        self._set_state(OrchestratorState.AWAITING_COMPLETION)
        self._start_ticker(request)

    def _complete(self, result: CompletionResult) -> None:
        request = self.live_request
        self.live_request = None
        self.current_directive = None
        self._stop_ticker()

        if request is None or request.generation != self.generation:
            logger.debug(f"[{self.session_id}] Dropping completion result without a live request")
            return

        logger.debug(f"[{self.session_id}] Directive finished (timed out: {result.timed_out})")
        # Context for the follow-up excludes the observation; the follow-up turn carries the output
        history = list(self.transcript)
        self._append(
            Role.SYSTEM,
            build_observation(result.output, result.timed_out, self.detector.quiescence_seconds),
            hidden=not result.timed_out,
        )

        if self.auto_run:
            self._request_model(build_follow_up(result.output, result.timed_out), history)
        else:
            self._set_state(OrchestratorState.IDLE)

    def _start_ticker(self, request: ExecutionRequest) -> None:
        self._stop_ticker()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the host drives tick() itself
            return
        self._ticker = loop.create_task(self._run_ticker(request))

    async def _run_ticker(self, request: ExecutionRequest) -> None:
        while self.live_request is request and self.detector.armed:
            await asyncio.sleep(self.tick_interval)
            if self.live_request is request:
                self.tick()

    def _stop_ticker(self) -> None:
        ticker, self._ticker = self._ticker, None
        if ticker is None or ticker.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if ticker is not current:
            ticker.cancel()

    # Transcript

    def _append(self, role: Role, content: str, hidden: bool = False) -> None:
        message = ChatMessage(role, content, hidden)
        self.transcript.append(message)
        if self.on_message:
            self.on_message(message)

    def _set_state(self, state: OrchestratorState) -> None:
        if state != self.state:
            logger.debug(f"[{self.session_id}] {self.state.value} -> {state.value}")
        self.state = state
        if self.on_state:
            self.on_state(state)
