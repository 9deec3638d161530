"""Centralized logging configuration."""

import sys
from typing import Optional

from loguru import logger

from .config import Config, get_config

log_format = " | ".join(
    (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</>",
        "<lvl>{level:<8}</>",
        "<c>{name}:{function}:{line}</>",
        "{message}",
    )
)


def configure_logging(config: Optional[Config] = None) -> None:
    """Replace loguru's default sink with the gameshare sinks."""
    config = config or get_config()

    logger.remove()
    logger.add(sys.stderr, format=log_format, level=config.log_level)

    if config.log_file:
        logger.add(
            str(config.log_file),
            format=log_format,
            level=config.log_level,
            rotation="1 day",
            retention="30 days",
            compression="zip",
            enqueue=True,
        )
