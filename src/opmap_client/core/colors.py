"""Console colors for opmap CLI output.

ANSI codes are only emitted when stdout is a TTY (and, on Windows, when a
TERM is set).
"""

import os
import re
import sys


class ConsoleColors:
    """ANSI color codes for terminal output."""

    GREEN = '\033[92m'
    RED = '\033[91m'
    YELLOW = '\033[93m'
    CYAN = '\033[96m'
    BOLD = '\033[1m'
    DIM = '\033[90m'
    RESET = '\033[0m'
    ANSI_ESCAPE = re.compile(r'\033\[[0-9;]*m')

    _enabled = sys.stdout.isatty() and (os.name != 'nt' or bool(os.environ.get('TERM')))

    @classmethod
    def set_enabled(cls, enabled: bool) -> None:
        cls._enabled = enabled

    @classmethod
    def _wrap(cls, color: str, text: str) -> str:
        if cls._enabled:
            return f"{color}{text}{cls.RESET}"
        return text

    @classmethod
    def success(cls, text: str) -> str:
        """Format text as success (green)"""
        return cls._wrap(cls.GREEN, text)

    @classmethod
    def error(cls, text: str) -> str:
        """Format text as error (red)"""
        return cls._wrap(cls.RED, text)

    @classmethod
    def warning(cls, text: str) -> str:
        """Format text as warning (yellow)"""
        return cls._wrap(cls.YELLOW, text)

    @classmethod
    def info(cls, text: str) -> str:
        return cls._wrap(cls.CYAN, text)

    @classmethod
    def bold(cls, text: str) -> str:
        return cls._wrap(cls.BOLD, text)

    @classmethod
    def dim(cls, text: str) -> str:
        return cls._wrap(cls.DIM, text)

    @classmethod
    def strip(cls, text: str) -> str:
        """Remove ANSI escape codes."""
        return cls.ANSI_ESCAPE.sub('', text)
