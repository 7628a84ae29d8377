"""LLM integration for minessh."""

from .client import (
    AssistantMessage,
    FormatError,
    GatewayError,
    ModelGateway,
    NetworkError,
    StatusError,
    create_model_gateway,
)
from .context import ContextBuilder, ConversationContext, build_follow_up, build_observation
from .parsers import Segment, parse_directive, parse_run_command, parse_write_file, render_segments

__all__ = [
    "AssistantMessage",
    "FormatError",
    "GatewayError",
    "ModelGateway",
    "NetworkError",
    "StatusError",
    "create_model_gateway",
    "ContextBuilder",
    "ConversationContext",
    "build_follow_up",
    "build_observation",
    "Segment",
    "parse_directive",
    "parse_run_command",
    "parse_write_file",
    "render_segments",
]
