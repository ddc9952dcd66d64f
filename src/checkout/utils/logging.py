"""Logging configuration for the Checkout domain."""

import logging

import structlog

# Suppress noisy library loggers
_QUIET_LOGGERS = ("httpx", "httpcore")


def configure_logging(environment: str = "development", level: int = logging.INFO) -> None:
    """Configure structlog: JSON lines in production, console output elsewhere."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if environment == "production":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
