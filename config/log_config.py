"""
Structured logging setup.

Services only call structlog.get_logger(__name__); entry points call
configure_logging() once before running anything.
"""

import logging
import sys
from typing import Optional

import structlog

from config.settings import Settings, get_settings


def configure_logging(app_settings: Optional[Settings] = None) -> None:
    """Configure structlog on top of the stdlib logging module."""
    app_settings = app_settings or get_settings()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, app_settings.log_level),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer() if app_settings.is_production
                else structlog.dev.ConsoleRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
