"""
Logging configuration.

Configures loguru sinks for the repair worker and maintenance scripts.
"""

import sys

from loguru import logger

from app.config.settings import settings


def setup_logging(component: str = "referrals") -> None:
    """Configure stderr and rotating file sinks."""
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)

    if settings.log_file:
        logger.add(
            settings.log_file,
            rotation="1 day",
            retention="7 days",
            level=settings.log_level,
            encoding="utf-8",
        )

    logger.info(f"Logging configured for {component} ({settings.environment})")
