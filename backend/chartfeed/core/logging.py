import logging
import sys

import structlog

from chartfeed.config import settings

# Libraries that log every frame or request at INFO
NOISY_LOGGERS = ("websockets", "httpx", "httpcore")


def setup_logging() -> None:
    """Configure structlog for the chart feed.

    Console output in debug mode, one JSON object per line otherwise. Every
    record carries ``service`` and ``env`` so swap-stream and API logs can be
    told apart when several feeds share a sink.
    """
    log_level = getattr(logging, settings.app_log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer()
            if settings.app_debug
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service="chartfeed", env=settings.app_env)

    # uvicorn and the transport libraries log through the standard library
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
