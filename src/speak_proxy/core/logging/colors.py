"""
ANSI Colors for the Human-Readable Console Log.

Only the operator console (stderr) is ever colored. The per-request access
line on stdout is consumed by log aggregation and stays plain JSON.

Colors are disabled when:
    - SPEAK_PROXY_NO_COLOR=1 is set
    - NO_COLOR is set (https://no-color.org/)
    - stderr is not a TTY (container logs, pipes, pytest capture)
"""
from __future__ import annotations

import os
import sys


class Colors:
    """ANSI escape sequences. Always close colored text with RESET."""
    RESET = "\033[0m"

    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    GRAY = "\033[90m"

    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_CYAN = "\033[96m"


def supports_color() -> bool:
    """Return True when the console handler should emit ANSI colors."""
    if os.getenv("SPEAK_PROXY_NO_COLOR", "0") == "1":
        return False
    if os.getenv("NO_COLOR"):
        return False

    stream = sys.stderr
    if not hasattr(stream, "isatty") or not stream.isatty():
        return False

    if sys.platform == "win32":
        try:
            import ctypes
            kernel32 = ctypes.windll.kernel32
            # STD_ERROR_HANDLE = -12, enable VT processing
            kernel32.SetConsoleMode(kernel32.GetStdHandle(-12), 7)
            return True
        except Exception:
            return False

    return True


# Re-evaluated by configure_logging(); tests flip it directly.
USE_COLORS = supports_color()


def colorize(text: str, color: str) -> str:
    """Wrap text in an ANSI color when colors are enabled."""
    if not USE_COLORS:
        return text
    return f"{color}{text}{Colors.RESET}"


def get_tag_color(tag: str) -> str:
    """Color for a log tag (INFO, WARN, ERROR, ...)."""
    tag_colors = {
        "SUCCESS": Colors.BRIGHT_GREEN,
        "FAIL": Colors.BRIGHT_RED,
        "ERROR": Colors.BRIGHT_RED,
        "WARN": Colors.BRIGHT_YELLOW,
        "WARNING": Colors.BRIGHT_YELLOW,
        "INFO": Colors.BRIGHT_CYAN,
        "DEBUG": Colors.GRAY,
        "TRACE": Colors.DIM,
    }
    return tag_colors.get(tag.upper(), Colors.WHITE)


def get_status_color(status: str) -> str:
    """Color for a request outcome in the console summary line."""
    if status == "ok":
        return Colors.GREEN
    if status in ("bad_request", "rate_limited"):
        return Colors.YELLOW
    return Colors.RED
