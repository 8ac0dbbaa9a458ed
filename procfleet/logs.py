"""
Diagnostic logging.

Kept apart from the process output stream: log records go to stderr and,
when configured, to a rotating log file.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler

from .config import Config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(config: Config):
    """Configure the root logger from ``config``."""
    log_formatter = logging.Formatter(LOG_FORMAT)
    level = logging.getLevelName(config.log_level)
    if not isinstance(level, int):
        level = logging.WARNING

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(log_formatter)
    console_handler.setLevel(level)
    handlers = [console_handler]

    # Rotating file handler (auto-compaction)
    if config.log_file:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            config.log_file,
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
        )
        file_handler.setFormatter(log_formatter)
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    logging.basicConfig(
        level=logging.DEBUG if config.log_file else level,
        handlers=handlers,
        force=True,
    )
