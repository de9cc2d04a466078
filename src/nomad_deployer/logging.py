"""Logging configuration for nomad-deployer."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog

from nomad_deployer.config import get_settings

if TYPE_CHECKING:
    from nomad_deployer.config import Settings


def setup_logging(settings: Settings | None = None) -> None:
    """Configure structured logging."""
    settings = settings or get_settings()

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            (
                structlog.dev.ConsoleRenderer(colors=True)
                if settings.is_development
                else structlog.processors.JSONRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # Also configure standard library logging for third-party packages
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    # aiohttp access logs are replaced by our own request middleware
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def flush_logging() -> None:
    """Flush buffered output from structlog and stdlib handlers."""
    sys.stdout.flush()
    for handler in logging.root.handlers:
        handler.flush()


@contextmanager
def logging_session(settings: Settings | None = None) -> Iterator[structlog.stdlib.BoundLogger]:
    """Configure logging for the lifetime of the process.

    Yields the root application logger and flushes all output on exit,
    including when the body raises.
    """
    setup_logging(settings)
    try:
        yield get_logger("nomad_deployer")
    finally:
        flush_logging()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance."""
    return structlog.get_logger(name)
