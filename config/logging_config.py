"""
Structured logging setup shared by the API app and the batch CLI.
"""

import logging

import structlog

from config.settings import settings


def configure_logging(json_output: bool = None) -> None:
    """
    Configure structlog on top of stdlib logging.

    Args:
        json_output: Force JSON rendering. Defaults to production mode.
    """
    if json_output is None:
        json_output = settings.is_production

    logging.basicConfig(format="%(message)s", level=settings.log_level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer() if json_output
                else structlog.dev.ConsoleRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
