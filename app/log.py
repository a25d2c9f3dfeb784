# app/log.py
"""
Structured logging setup.

structlog sits on top of stdlib logging so uvicorn's handlers and levels
still apply. JSON lines in production, pretty console output with APP_DEBUG.
"""

import logging

import structlog

from config import APP_DEBUG, LOG_LEVEL

logging.basicConfig(format="%(message)s", level=getattr(logging, LOG_LEVEL, logging.INFO))

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
        structlog.dev.ConsoleRenderer() if APP_DEBUG else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def get_logger(name: str):
    return structlog.get_logger(name)
