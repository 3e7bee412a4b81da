"""
Local Structured Logging

Configures structlog on top of the standard logging module. The level comes
from AppSettings.log_level (LOG_LEVEL) unless one is passed explicitly.

Called once when the package is imported so that every module logs through
the same JSON pipeline, and again by create_app_components with the
settings it was built from.
"""

import logging
from typing import Optional

import structlog

from recurring_ledger.config.settings import get_settings


def configure_logging(level: Optional[str] = None) -> str:
    """
    Configure structlog and set the root log level.

    Returns the level that was applied.
    """
    level = (level or get_settings().app.log_level).upper()

    logging.basicConfig(format="%(message)s", level=level)
    logging.getLogger().setLevel(level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return level
