"""
Logging configuration.

Console lines are short and timestamped ("12:30:01 Run 1/3 ..."), rendered by
rich and colored by outcome when the console is a terminal. A rotating log
file can be enabled through PLZRUN_LOG_FILE and uses the long format.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import TextIO

from rich.console import Console
from rich.highlighter import NullHighlighter
from rich.logging import RichHandler

from .config import Settings

# Pass as `extra=` to pick the console style of a log line
NOTE = {"style": "note"}
SUCCESS = {"style": "success"}
INTERRUPTED = {"style": "interrupted"}
ERROR = {"style": "error"}

STYLES = {
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "interrupted": "blue",
}

CONSOLE_TIME_FORMAT = "%H:%M:%S"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def record_style(record: logging.LogRecord) -> str:
    """Get the console style for a record, falling back to its level."""
    style = getattr(record, "style", None)
    if style:
        return style
    if record.levelno >= logging.ERROR:
        return "error"
    if record.levelno >= logging.WARNING:
        return "warning"
    return "note"


class OutcomeHandler(RichHandler):
    """RichHandler that colors each message by its outcome style."""

    def render_message(self, record, message):
        text = super().render_message(record, message)
        style = STYLES.get(record_style(record))
        if style:
            text.stylize(style)
        return text


def make_console(settings: Settings, stream: TextIO = None) -> Console:
    """Console for status lines. Colors only when enabled and writing to a terminal."""
    return Console(
        file=stream or sys.stderr,
        color_system="auto" if settings.color else None,
        no_color=not settings.color,
    )


def setup_logging(settings: Settings, stream: TextIO = None) -> logging.Logger:
    """Configure the root logger with a rich console handler and an optional file."""
    console_handler = OutcomeHandler(
        console=make_console(settings, stream),
        show_level=False,
        show_path=False,
        omit_repeated_times=False,
        log_time_format=CONSOLE_TIME_FORMAT,
        highlighter=NullHighlighter(),
        markup=False,
    )
    handlers = [console_handler]

    # Rotating file handler
    if settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            settings.log_file,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        )
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(file_handler)

    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(level=level, format="%(message)s", handlers=handlers, force=True)
    return logging.getLogger("plzrun")
