"""Model reply parsing utilities for minessh.

A reply carries at most one actionable directive. A ``<write_file>`` block
takes priority over any command tag; command tags are tried in the order of
``COMMAND_PATTERNS`` and the first hit wins. Anything that is not a
well-formed tag is treated as a final answer.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

from ..models import Directive, RunCommand, WriteFile
from ..utils.logging import logger


WRITE_FILE_PATTERN = re.compile(r'<write_file\s+path="([^"]+)">(.*?)</write_file>', re.DOTALL)

COMMAND_PATTERNS = [
    re.compile(r"<run>(.*?)</run>", re.DOTALL),
    re.compile(r"@@@COMMAND@@@(.*?)@@@END@@@", re.DOTALL),
    re.compile(r"```bash\s*(.*?)\s*```", re.DOTALL),
]

# Tags recognised when splitting a reply for display
_SEGMENT_PATTERN = re.compile(r'(<run>.*?</run>|<write_file\s+path="[^"]+">.*?</write_file>)', re.DOTALL)


def parse_write_file(llm_output: str) -> Optional[WriteFile]:
    """Extract the first ``<write_file path="...">`` block."""
    match = WRITE_FILE_PATTERN.search(llm_output)
    if not match:
        return None
    path = match.group(1).strip()
    if not path:
        return None
    return WriteFile(path=path, content=match.group(2).strip())


def parse_run_command(llm_output: str) -> Optional[RunCommand]:
    """Extract the first command tag, trying each supported syntax in turn.

    An empty tag is a valid result and means "press Enter".
    """
    for pattern in COMMAND_PATTERNS:
        match = pattern.search(llm_output)
        if match:
            return RunCommand(text=match.group(1).strip())
    return None


def parse_directive(llm_output: str) -> Optional[Directive]:
    """Return the single directive carried by a model reply, or None for a final answer."""
    if not llm_output:
        return None

    directive = parse_write_file(llm_output)
    if directive is None:
        directive = parse_run_command(llm_output)

    if directive is None:
        logger.debug("No directive found in model reply")
    else:
        logger.debug(f"Parsed directive: {directive}")
    return directive


@dataclass(frozen=True)
class Segment:
    """A piece of assistant text prepared for display."""
    kind: str  # "text", "command" or "file"
    content: str
    path: Optional[str] = None


def render_segments(content: str) -> List[Segment]:
    """Split assistant text into plain text, command and file segments.

    Blank text between tags is dropped.
    """
    segments: List[Segment] = []
    last_index = 0

    for match in _SEGMENT_PATTERN.finditer(content):
        if match.start() > last_index:
            segments.append(Segment("text", content[last_index:match.start()]))

        block = match.group(0)
        if block.startswith("<run>"):
            segments.append(Segment("command", block[len("<run>"):-len("</run>")].strip()))
        else:
            file_match = WRITE_FILE_PATTERN.match(block)
            segments.append(Segment("file", file_match.group(2).strip(), path=file_match.group(1).strip()))

        last_index = match.end()

    if last_index < len(content):
        segments.append(Segment("text", content[last_index:]))

    return [s for s in segments if s.kind != "text" or s.content.strip()]
