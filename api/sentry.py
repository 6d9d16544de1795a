"""Sentry error tracking integration."""

from __future__ import annotations

import sentry_sdk
import structlog
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.httpx import HttpxIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.rq import RqIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from api.config import get_settings

logger = structlog.get_logger(__name__)

# Flag to track if Sentry is initialized
_sentry_initialized = False

QUIET_TRANSACTIONS = {"/api/health", "/api/ready", "/metrics"}


def init_sentry() -> bool:
    """Initialize Sentry SDK if configured.

    Returns True if Sentry was initialized, False otherwise.
    """
    global _sentry_initialized

    settings = get_settings()

    if not settings.sentry_dsn:
        logger.info("sentry_not_configured")
        return False

    if _sentry_initialized:
        return True

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.env,
        release="visibility-dashboard@0.1.0",
        sample_rate=1.0,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        send_default_pii=False,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            StarletteIntegration(transaction_style="endpoint"),
            HttpxIntegration(),
            AsyncioIntegration(),
            RqIntegration(),
            LoggingIntegration(
                level=None,  # Capture all logs as breadcrumbs
                event_level=None,  # Don't create events for logs
            ),
        ],
        before_send=_before_send,
        before_send_transaction=_before_send_transaction,
    )

    _sentry_initialized = True
    logger.info("sentry_initialized", environment=settings.env)
    return True


def _before_send(event: dict, hint: dict) -> dict | None:
    """Drop 4xx application errors."""
    from api.exceptions import VisibilityError

    if "exc_info" in hint:
        _, exc_value, _ = hint["exc_info"]
        if isinstance(exc_value, VisibilityError) and 400 <= exc_value.status_code < 500:
            return None

    return event


def _before_send_transaction(event: dict, hint: dict) -> dict | None:  # noqa: ARG001
    """Filter health check and scrape transactions."""
    if event.get("transaction") in QUIET_TRANSACTIONS:
        return None
    return event


def set_tag(key: str, value: str) -> None:
    """Set a tag on the current Sentry scope."""
    if not _sentry_initialized:
        return
    sentry_sdk.set_tag(key, value)


def capture_exception(exception: Exception) -> str | None:
    """Capture an exception and send to Sentry.

    Returns the event ID if captured, None otherwise.
    """
    if not _sentry_initialized:
        return None
    event_id: str | None = sentry_sdk.capture_exception(exception)
    return event_id
