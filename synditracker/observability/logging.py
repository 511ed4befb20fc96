"""
Structured logging configuration using structlog.

JSON logs in production, console logs in development. A request id bound
by the API middleware is merged into every line logged while that request
is being handled.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from synditracker.config.settings import get_settings


def setup_logging() -> None:
    """
    Configure structlog and route stdlib logging through the same stream.

    Library modules keep using ``logging.getLogger(__name__)``; API modules
    use ``structlog.get_logger``. Both end up on stdout.
    """
    settings = get_settings()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_production:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )

    # Noisy libraries
    for name in ("httpx", "httpcore", "asyncio", "asyncpg"):
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs) -> None:
    """Bind key-value pairs to every subsequent log line in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
