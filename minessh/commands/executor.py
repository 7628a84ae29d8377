"""Directive execution on a remote shell session."""

import base64

from ..constants import SEND_ENTER_LABEL
from ..models import Directive, RunCommand, WriteFile
from ..utils.logging import logger


def build_write_file_command(path: str, content: str) -> str:
    """Shell line that writes ``content`` to ``path``.

    The content travels base64-encoded (UTF-8) so quoting and newlines in
    the file never reach the remote shell's parser.
    """
    encoded = base64.b64encode(content.encode("utf-8")).decode("ascii")
    return f'echo "{encoded}" | base64 -d > "{path}" && echo "File written to {path}"'


def encode_directive(directive: Directive) -> str:
    """Text written to the session for a directive, including the trailing newline."""
    if isinstance(directive, WriteFile):
        return build_write_file_command(directive.path, directive.content) + "\n"
    if isinstance(directive, RunCommand):
        return f"{directive.text}\n"
    raise TypeError(f"Not a directive: {directive!r}")


def describe_directive(directive: Directive) -> str:
    """Short execution-status text for display."""
    if isinstance(directive, WriteFile):
        return f"Writing file: {directive.path}"
    return directive.text or SEND_ENTER_LABEL


class DirectiveExecutor:
    """Writes directives to a session transport."""

    def __init__(self, transport):
        """Initialize the executor.

        Args:
            transport: Object with a ``write(session_id, data)`` method
        """
        self.transport = transport

    def execute(self, session_id: str, directive: Directive) -> str:
        """Send a directive to the session and return its status text.

        Transport errors propagate to the caller.
        """
        status = describe_directive(directive)
        logger.command(f"[{session_id}] {status}")
        self.transport.write(session_id, encode_directive(directive).encode("utf-8"))
        return status


def create_directive_executor(transport) -> DirectiveExecutor:
    """Create a directive executor bound to a transport."""
    return DirectiveExecutor(transport)
