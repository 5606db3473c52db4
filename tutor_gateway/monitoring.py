"""
Error Monitoring for the Tutor Gateway

Sentry is initialized only when SENTRY_DSN is set. Until then
capture_exception() is a no-op inside the SDK, so callers never need to
check whether monitoring is on.

Events pass through a before_send hook that masks identity fields and
email-like values; the gateway only ever reports hashed identities.
"""

from typing import Any, Optional

import sentry_sdk

from tutor_gateway.config import Settings
from tutor_gateway.logging_config import get_logger
from tutor_gateway.utils.text_utils import EMAIL_PATTERN, PHONE_PATTERN


logger = get_logger("monitoring")

SCRUBBED = "[scrubbed]"
SENSITIVE_KEYS = {
    "user_id",
    "userid",
    "student_id",
    "email",
    "phone",
    "prompt",
    "client_ip",
    "ip",
    "authorization",
    "x-user-id",
}


def _scrub_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: SCRUBBED if str(key).lower() in SENSITIVE_KEYS else _scrub_value(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_scrub_value(item) for item in value]
    if isinstance(value, str) and (EMAIL_PATTERN.search(value) or PHONE_PATTERN.search(value)):
        return SCRUBBED
    return value


def scrub_event(event: dict, hint: Optional[dict] = None) -> dict:
    """Sentry before_send hook: mask sensitive keys and contact-like strings."""
    for section in ("extra", "contexts", "request", "user", "tags"):
        if section in event:
            event[section] = _scrub_value(event[section])
    return event


def init_monitoring(settings: Settings, release: Optional[str] = None) -> bool:
    """
    Initialize Sentry when a DSN is configured.

    Args:
        settings: Application settings
        release: Release identifier reported with events

    Returns:
        True if Sentry was initialized
    """
    if not settings.sentry_dsn:
        logger.debug("Sentry disabled (no SENTRY_DSN)")
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.env,
        release=release,
        send_default_pii=False,
        attach_stacktrace=True,
        before_send=scrub_event,
    )
    logger.info("Sentry initialized", extra={"component": "monitoring", "event": "sentry_init"})
    return True


def capture_exception(exc: BaseException, **context: Any) -> None:
    """
    Report an exception with structured context.

    Args:
        exc: Exception to report
        **context: Extra fields attached to the event (hashed identities only)
    """
    with sentry_sdk.new_scope() as scope:
        for key, value in context.items():
            scope.set_extra(key, value)
        sentry_sdk.capture_exception(exc)
