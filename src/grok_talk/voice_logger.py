"""
Shared logging configuration for grok-talk.

Provides rich terminal output and a plain-text session log file.
The log file is truncated each time the assistant starts and holds one
line per event in the form ``[HH:MM:SS] <message>``.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

from grok_talk.settings import DEFAULT_LOG_FILE

LOG_FORMAT = "[%(asctime)s] %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

# Configure rich console for colored output
console = Console()

_active_log_file: Optional[Path] = None


class SingleLineFormatter(logging.Formatter):
    """Folds multi-line messages (e.g. chat replies) onto one log line."""

    def formatMessage(self, record: logging.LogRecord) -> str:
        record.message = " ".join(record.message.split())
        return super().formatMessage(record)


def setup_logger(
    name: str = "grok_talk",
    log_file: Optional[Union[str, Path]] = None,
    verbose: bool = False,
) -> logging.Logger:
    """Setup and return a configured logger with both terminal and file output.

    Creates a logger that outputs to:
    1. Console with rich formatting and colors
    2. A session log file, truncated at startup

    Args:
        name: Logger name (default: "grok_talk").
        log_file: Path of the session log (default: outputs/grok_talk.log).
        verbose: Show DEBUG records on the console.

    Returns:
        Configured logger instance.
    """
    global _active_log_file

    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    # Rich handler for terminal; the file keeps DEBUG regardless
    rich_handler = RichHandler(
        console=console,
        show_time=True,
        show_level=True,
        show_path=False,
        level=logging.DEBUG if verbose else logging.INFO,
    )
    rich_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(rich_handler)

    path = Path(log_file if log_file is not None else DEFAULT_LOG_FILE)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        # mode "w": the log only ever describes the current session
        file_handler = logging.FileHandler(path, mode="w", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(SingleLineFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        logger.addHandler(file_handler)
        _active_log_file = path
    except OSError as e:
        console.print(f"[yellow]Warning: Could not setup file logging to {path}: {e}[/]")

    return logger


def teardown_logger(name: str = "grok_talk") -> None:
    """Close and detach every handler installed by :func:`setup_logger`."""
    global _active_log_file

    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    _active_log_file = None


def print_log_location() -> None:
    """Print the log file location to the console."""
    if _active_log_file is None:
        console.print("[dim]File logging disabled[/]")
        return
    console.print(f"[dim]Logs saved to: {_active_log_file.resolve()}[/]")
