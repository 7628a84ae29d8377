"""Logging utilities for minessh."""

import sys
import datetime
from typing import TextIO

from ..constants import (
    CLR_RESET, CLR_CYAN, CLR_BOLD_CYAN, CLR_GREEN, CLR_BOLD_GREEN,
    CLR_MAGENTA, CLR_BOLD_MAGENTA, CLR_BLUE, CLR_BOLD_BLUE,
    CLR_YELLOW, CLR_BOLD_YELLOW, CLR_WHITE, CLR_BOLD_WHITE,
    CLR_RED, CLR_BOLD_RED
)


class Logger:
    """Centralized logging for minessh with color coding and level management."""

    def __init__(self, debug_enabled: bool = False):
        self.debug_enabled = debug_enabled

        self.level_map = {
            "System": (CLR_CYAN, CLR_BOLD_CYAN),
            "User": (CLR_GREEN, CLR_BOLD_GREEN),
            "Assistant": (CLR_MAGENTA, CLR_BOLD_MAGENTA),
            "Session": (CLR_BLUE, CLR_BOLD_BLUE),
            "Command": (CLR_YELLOW, CLR_BOLD_YELLOW),
            "Error": (CLR_RED, CLR_BOLD_RED),
            "Warning": (CLR_YELLOW, CLR_BOLD_YELLOW),
            "Debug": (CLR_WHITE, CLR_BOLD_WHITE),
        }

    def set_debug(self, enabled: bool) -> None:
        """Enable or disable debug logging."""
        self.debug_enabled = enabled

    def get_current_timestamp(self) -> str:
        """Returns the current timestamp in YYYY-MM-DD HH:MM:SS format."""
        return datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S')

    def log_message(self, level: str, message: str) -> None:
        """Logs a message with a given level and color coding."""
        if level == "Debug" and not self.debug_enabled:
            return

        timestamp = self.get_current_timestamp()

        if level in self.level_map:
            header_color, content_color = self.level_map[level]
        else:
            header_color, content_color = CLR_WHITE, CLR_BOLD_WHITE

        stream: TextIO = sys.stderr if level in ["Error", "Warning"] else sys.stdout

        header_text = f"{header_color}[{timestamp}] [{level}]: {CLR_RESET}"

        # Continuation lines line up under the first line's content
        indent_str = ' ' * len(f"[{timestamp}] [{level}]: ")

        lines = message.splitlines()
        if not lines:
            print(f"{header_text}{content_color}{CLR_RESET}", file=stream)
            return

        print(f"{header_text}{content_color}{lines[0]}{CLR_RESET}", file=stream)
        for line in lines[1:]:
            print(f"{indent_str}{content_color}{line}{CLR_RESET}", file=stream)

        stream.flush()

    def system(self, message: str) -> None:
        """Log a system message."""
        self.log_message("System", message)

    def user(self, message: str) -> None:
        """Log a user message."""
        self.log_message("User", message)

    def assistant(self, message: str) -> None:
        """Log a message produced by the model."""
        self.log_message("Assistant", message)

    def session(self, message: str) -> None:
        """Log a remote session event."""
        self.log_message("Session", message)

    def command(self, message: str) -> None:
        """Log a directive dispatched to a session."""
        self.log_message("Command", message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.log_message("Error", message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.log_message("Warning", message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.log_message("Debug", message)


# Global logger instance (debug setting is applied once config is loaded)
logger = Logger()
