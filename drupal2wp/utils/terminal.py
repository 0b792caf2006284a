"""Terminal Utilities Module."""

import os
import sys
from functools import lru_cache

import colorama


@lru_cache(maxsize=1)
def supports_color() -> bool:
    """Check whether console log output should carry ANSI color codes.

    ``NO_COLOR`` always disables color and ``FORCE_COLOR`` always enables it.
    Otherwise color is used only when stdout is an interactive terminal.

    Returns:
        bool: True if the terminal supports color, False otherwise
    """
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True

    if not (hasattr(sys.stdout, "isatty") and sys.stdout.isatty()):
        return False

    if sys.platform == "win32":
        return (
            getattr(colorama, "fixed_windows_console", False)
            or "ANSICON" in os.environ
            or "WT_SESSION" in os.environ
            or os.environ.get("TERM_PROGRAM") == "vscode"
        )

    return os.environ.get("TERM") != "dumb"
