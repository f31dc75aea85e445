"""Logging utilities for the Sim store.

Storage problems are reported on stdout with a short tag and an ANSI color so
a corrupt read or a refused write stands out from routine messages. Set
SIMSTORE_NO_COLOR to get plain text (logs redirected to files, CI output).
"""

import os
from enum import Enum


class Color(Enum):
    """ANSI escape sequences used by the log helpers."""

    RED = "\033[91m"       # Refused writes, unexpected failures
    YELLOW = "\033[93m"    # Corrupt reads, failed cleanups
    GREEN = "\033[92m"     # Completed operations
    CYAN = "\033[96m"      # Informational

    BOLD = "\033[1m"
    RESET = "\033[0m"


def colored(text: str, color: Color, bold: bool = False) -> str:
    """Return ``text`` wrapped in ``color`` (and optionally bold).

    The text comes back untouched when SIMSTORE_NO_COLOR is set.
    """
    if os.getenv("SIMSTORE_NO_COLOR"):
        return text

    start = Color.BOLD.value + color.value if bold else color.value
    return f"{start}{text}{Color.RESET.value}"


# Tags keep the levels distinguishable without color
LOG_TAG_ERROR = "[!]"
LOG_TAG_WARNING = "[?]"
LOG_TAG_SUCCESS = "[✓]"
LOG_TAG_INFO = "[i]"


def _emit(tag: str, message: str, color: Color) -> None:
    print(colored(f"{tag} {message}", color))


def log_error(message: str) -> None:
    """Report a failure the caller will see as an unsuccessful result."""
    _emit(LOG_TAG_ERROR, message, Color.RED)


def log_warning(message: str) -> None:
    """Report a problem that was recovered from (default value used, etc.)."""
    _emit(LOG_TAG_WARNING, message, Color.YELLOW)


def log_success(message: str) -> None:
    _emit(LOG_TAG_SUCCESS, message, Color.GREEN)


def log_info(message: str) -> None:
    _emit(LOG_TAG_INFO, message, Color.CYAN)
