"""Utility functions and helpers for minessh."""

from .logging import logger
from .helpers import (
    check_dependencies,
    parse_target,
    clip_text,
    safe_file_write
)

__all__ = [
    "logger",
    "check_dependencies",
    "parse_target",
    "clip_text",
    "safe_file_write",
]
