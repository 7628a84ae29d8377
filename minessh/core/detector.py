"""Stream completion detection for dispatched directives."""

import re
import time
from typing import Callable, Optional

from ..constants import DEFAULT_QUIESCENCE_SECONDS, PROMPT_CHARACTERS
from ..utils.logging import logger
from ..models import CompletionResult


# Last line of the buffer ends in a prompt character, optionally followed by whitespace.
# This is a heuristic: ordinary output that happens to end in one of these
# characters completes the window early.
PROMPT_PATTERN = re.compile(r"(?:\r\n|\n|^)[^\n]*?[" + re.escape(PROMPT_CHARACTERS) + r"]\s*\Z")


class CompletionDetector:
    """Decides when the output of one dispatched directive is complete.

    The detector is armed once per dispatched directive. While armed it
    buffers every chunk it is fed; it disarms and returns a
    :class:`CompletionResult` either when the buffer ends in a shell prompt
    or when no chunk has arrived for ``quiescence_seconds``. Exactly one
    result is produced per armed window.
    """

    def __init__(self,
                 quiescence_seconds: float = DEFAULT_QUIESCENCE_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.quiescence_seconds = quiescence_seconds
        self.clock = clock
        self.armed = False
        self.buffer = ""
        self.last_chunk_time = 0.0

    def arm(self) -> None:
        """Open a new window: clear the buffer and start the silence timer."""
        self.buffer = ""
        self.armed = True
        self.last_chunk_time = self.clock()
        logger.debug("Completion detector armed")

    def disarm(self) -> None:
        """Close the window without producing a result."""
        self.armed = False

    def feed(self, chunk: str) -> Optional[CompletionResult]:
        """Append a chunk while armed and report completion on a prompt match."""
        if not self.armed:
            return None

        self.buffer += chunk
        self.last_chunk_time = self.clock()

        if PROMPT_PATTERN.search(self.buffer):
            self.armed = False
            logger.debug("Shell prompt detected, window complete")
            return CompletionResult(output=self.buffer.strip(), timed_out=False)
        return None

    def tick(self, now: Optional[float] = None) -> Optional[CompletionResult]:
        """Report a timed-out result once the stream has been silent long enough."""
        if not self.armed:
            return None

        if now is None:
            now = self.clock()
        if now - self.last_chunk_time > self.quiescence_seconds:
            self.armed = False
            logger.debug(f"No output for {self.quiescence_seconds}s, window timed out")
            return CompletionResult(output=self.buffer, timed_out=True)
        return None
