"""
Wyvern Logging
==============

Console logging for the protocol contracts, built on the standard `logging`
module with `rich` for highlighting. Handlers hang off the `wyvern` package
logger, so a host application keeps control of its root logger.

Usage:
    >>> from wyvern.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Registry deployed")
"""

import logging
import re
import sys
import threading
import time

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_LEVEL,
    LOG_FORMAT,
    LOG_DATE_FORMAT,
    LOG_CONSOLE_HIGHLIGHTING,
)


PACKAGE_LOGGER = "wyvern"

WYVERN_THEME = Theme(
    {
        "wyvern.address":        "cyan",
        "wyvern.hash":           "bold blue",
        "wyvern.grant_pending":  "bold yellow",
        "wyvern.grant_granted":  "bold green",
        "wyvern.grant_revoked":  "bold red",
        "wyvern.level_error":    "bold red",
        "wyvern.level_warning":  "bold yellow",
    }
)


def _level(name) -> int:
    return getattr(logging, str(name).upper(), logging.INFO)


class TerminalSafeFormatter(logging.Formatter):
    """
    Formatter that strips ANSI escapes and control characters.

    Log lines carry caller-supplied bytes (order extradata, token names),
    which must not be able to rewrite the operator's terminal.
    """

    _ansi_escape_re = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b[@-Z\\-_]")
    # Control chars except Tab and Newline
    _control_chars_re = re.compile(r"[\x00-\x08\x0B-\x1F\x7F]")

    @classmethod
    def sanitize(cls, text: str) -> str:
        if not text:
            return text
        return cls._control_chars_re.sub("", cls._ansi_escape_re.sub("", text))

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class WyvernLogHighlighter(RegexHighlighter):
    """Colors hashes, addresses and grant states in console output."""

    base_style = "wyvern."
    highlights = [
        r"(?P<hash>\b0x[0-9a-fA-F]{64}\b)",
        r"(?P<address>\b0x[0-9a-fA-F]{40}\b)",
        r"(?P<grant_pending>\bPENDING\b)",
        r"(?P<grant_granted>\bGRANTED\b)",
        r"(?P<grant_revoked>\bREVOKED\b)",
        r"(?P<level_error>\b(?:ERROR|CRITICAL)\b)",
        r"(?P<level_warning>\bWARNING\b)",
    ]


class LogManager:
    """
    Configures the package logger once, on first use.

    Attributes:
        _lock (threading.Lock): Guards one-time configuration.
    """

    _lock = threading.Lock()

    def __init__(self) -> None:
        self._configured = False

    def _formatter(self) -> TerminalSafeFormatter:
        try:
            formatter = TerminalSafeFormatter(fmt=str(LOG_FORMAT), datefmt=f"{LOG_DATE_FORMAT} UTC")
        except ValueError as e:
            print(f"wyvern.logger - invalid LOG_FORMAT ({e}), using default", file=sys.stderr)
            formatter = TerminalSafeFormatter(fmt=LOG_FORMAT.default(), datefmt=f"{LOG_DATE_FORMAT.default()} UTC")
        # UTC for consistency across hosts
        formatter.converter = time.gmtime
        return formatter

    def configure(self, log_level=None) -> None:
        """
        Attach the console handler to the package logger.

        Args:
            log_level: Level name (DEBUG, INFO, ...). Defaults to LOG_LEVEL from .env.
        """
        with self._lock:
            if self._configured:
                return

            numeric_level = _level(log_level or LOG_LEVEL)
            package_logger = logging.getLogger(PACKAGE_LOGGER)
            package_logger.setLevel(numeric_level)
            package_logger.handlers.clear()

            if LOG_CONSOLE_HIGHLIGHTING:
                handler = RichHandler(
                    console=Console(theme=WYVERN_THEME, highlight=False, stderr=True),
                    highlighter=WyvernLogHighlighter(),
                    rich_tracebacks=True,
                    show_path=False,
                    show_time=False,
                    show_level=False,
                    markup=False,
                )
            else:
                handler = logging.StreamHandler(sys.stderr)
            handler.setLevel(numeric_level)
            handler.setFormatter(self._formatter())
            package_logger.addHandler(handler)

            self._configured = True

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)

    def set_level(self, log_level: str) -> None:
        """Change the level of the package logger and its handlers."""
        if not self._configured:
            self.configure(log_level=log_level)
            return
        numeric_level = _level(log_level)
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        package_logger.setLevel(numeric_level)
        for handler in package_logger.handlers:
            handler.setLevel(numeric_level)


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Return a module logger, configuring the package logger on first use."""
    return _manager.get_logger(name)


def set_log_level(log_level: str) -> None:
    """Change the package log level at runtime (e.g. from a loaded config)."""
    _manager.set_level(log_level)
