"""Logging configuration for influxsync.

Console output goes through rich on stderr so it never mixes with the
statements printed by ``--diff``; an optional rotating log file receives
the same records in plain text.
"""
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .config import LoggingConfig


def setup_logging(config: LoggingConfig, level: Optional[str] = None) -> None:
    """Configure the ``influxsync`` logger.

    Args:
        config: Logging settings
        level: Level overriding ``config.level`` (from the command line)
    """
    log_level = getattr(logging, (level or config.level).upper(), logging.WARNING)

    logger = logging.getLogger("influxsync")
    logger.setLevel(log_level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )
    console_handler.setLevel(log_level)
    logger.addHandler(console_handler)

    if config.file:
        log_file = Path(config.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=config.max_size,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(config.format))
        logger.addHandler(file_handler)
