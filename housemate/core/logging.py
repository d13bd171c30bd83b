"""Logfire setup and the span/context helpers used by the repositories.

Modules log through ``logging.getLogger(__name__)``; once ``configure_logfire``
has run those records are shipped alongside the spans opened by services.
Multi-step repository operations (group create, join, removal, completion)
record a partially applied step with ``log_with_context`` so the affected
user, group and task ids end up as searchable attributes.
"""

import logging

import logfire
from fastapi import FastAPI

from housemate.core.config import Settings


logger = logging.getLogger(__name__)


def configure_logfire(settings: Settings) -> None:
    """Set up Logfire for housemate; data is only sent when a token is configured."""
    logfire.configure(
        token=settings.logfire_token,
        service_name="housemate",
        service_version="0.1.0",
        environment="production" if settings.is_production else "development",
        send_to_logfire="if-token-present",
    )
    logger.info("Logfire configured (token %s)", "present" if settings.logfire_token else "absent")


def instrument_fastapi(app: FastAPI) -> None:
    """Trace every request handled by the housemate routers."""
    logfire.instrument_fastapi(app)
    logger.info("FastAPI instrumentation configured")


def instrument_httpx() -> None:
    """Trace outbound httpx calls (store, Facebook, push gateway)."""
    logfire.instrument_httpx()
    logger.info("httpx instrumentation configured")


def span(name: str) -> logfire.LogfireSpan:
    """Open a span named ``<service>.<operation>``, e.g. ``group_service.complete_task``."""
    return logfire.span(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context: object,
) -> None:
    """Log ``message`` at ``level`` with the given ids attached as record attributes.

    Args:
        logger: Logger of the calling module
        level: Name of the level method to call ("info", "error", ...)
        message: Log message
        **context: Ids and error details, e.g. group_id, user_id, task_id, error
    """
    getattr(logger, level.lower())(message, extra=context)
