"""Helper utility functions for minessh."""

import shutil
from pathlib import Path
from typing import Optional, Tuple

from ..utils.logging import logger


def check_dependencies() -> bool:
    """Check for the external CLI tools the model gateway relies on."""
    if shutil.which("curl") is None:
        logger.warning("curl was not found on PATH. Model requests will fail until it is installed.")
        return False
    logger.debug("Dependency check passed (curl found).")
    return True


def parse_target(target: str) -> Tuple[Optional[str], str]:
    """Split ``user@host`` into its parts; the user part may be absent."""
    if "@" in target:
        username, host = target.rsplit("@", 1)
        return username or None, host
    return None, target


def clip_text(text: str, limit: int) -> str:
    """Shorten text for log output, keeping the head."""
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit] + f"... [{len(text) - limit} more chars]"


def safe_file_write(file_path: Path, content: str, description: str = None) -> bool:
    """Safely write content to a file with error handling."""
    desc = description or f"file {file_path}"
    try:
        file_path.write_text(content, encoding="utf-8")
        logger.system(f"Generated {desc}")
        return True
    except Exception as e:
        logger.error(f"Failed to write {desc}: {e}")
        return False
