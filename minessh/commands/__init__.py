"""Directive execution for minessh."""

from .executor import (
    DirectiveExecutor,
    build_write_file_command,
    create_directive_executor,
    describe_directive,
    encode_directive,
)

__all__ = [
    "DirectiveExecutor",
    "build_write_file_command",
    "create_directive_executor",
    "describe_directive",
    "encode_directive",
]
