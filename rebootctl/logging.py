"""Logging configuration for the rebootctl package."""
import logging
import sys
from typing import Optional

import typer

from .config import Config

LEVEL_COLORS = {
    logging.DEBUG: typer.colors.BLUE,
    logging.INFO: typer.colors.GREEN,
    logging.WARNING: typer.colors.YELLOW,
    logging.ERROR: typer.colors.RED,
    logging.CRITICAL: typer.colors.BRIGHT_RED,
}

NOISY_LOGGERS = ("kubernetes", "urllib3")


class ColorFormatter(logging.Formatter):
    """Formatter that colors the level name with typer.style."""

    def __init__(self, fmt: str, datefmt: Optional[str] = None, use_colors: bool = True):
        super().__init__(fmt, datefmt=datefmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors:
            return super().format(record)
        levelname = record.levelname
        record.levelname = typer.style(levelname, fg=LEVEL_COLORS.get(record.levelno), bold=True)
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class _MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int):
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.max_level


def setup_logging(
    verbose: bool = False,
    log_file: Optional[str] = None,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Configure the ``rebootctl`` logger.

    Informational records go to stdout, warnings and errors to stderr, and
    everything is optionally appended to ``log_file`` without colors.

    Args:
        verbose: Enable debug logging (also un-silences kubernetes/urllib3)
        log_file: Optional path of a log file to append to
        use_colors: Color level names when writing to a terminal

    Returns:
        The configured package logger
    """
    level = logging.DEBUG if verbose else getattr(logging, Config.LOG_LEVEL, logging.INFO)
    logger = logging.getLogger("rebootctl")
    logger.setLevel(level)
    logger.propagate = False

    # Reconfiguring (e.g. repeated CLI invocations in one process) replaces handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.addFilter(_MaxLevelFilter(logging.WARNING))
    stdout_handler.setFormatter(ColorFormatter(
        Config.LOG_FORMAT,
        datefmt=Config.LOG_DATEFMT,
        use_colors=use_colors and sys.stdout.isatty(),
    ))
    logger.addHandler(stdout_handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.WARNING)
    stderr_handler.setFormatter(ColorFormatter(
        Config.LOG_FORMAT,
        datefmt=Config.LOG_DATEFMT,
        use_colors=use_colors and sys.stderr.isatty(),
    ))
    logger.addHandler(stderr_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(Config.LOG_FORMAT, datefmt=Config.LOG_DATEFMT))
        logger.addHandler(file_handler)

    # Disable debug logging for noisy libraries
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)

    return logger
