"""
Text Utilities for the Tutor Gateway

Every piece of text that enters or leaves the gateway goes through
sanitize_text(): prompts, system prompt overrides, marketing facts, learner
context and model replies. Identities are reduced to short one-way hashes
with anonymize() before they are used as keys or written to logs.

Usage:
    from tutor_gateway.utils.text_utils import sanitize_text, anonymize

    prompt = sanitize_text(raw_prompt, 1200)
    learner_key = anonymize(user_id)
"""

import hashlib
import re
from typing import Optional

from tutor_gateway.config import GatewayConfig


EMAIL_PATTERN = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
PHONE_PATTERN = re.compile(r"\b(?:\+?1[-.\s]?)?(?:\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4})\b")
LONG_NUMBER_PATTERN = re.compile(r"\b\d{9,}\b")

# Truncating can expose a fresh match at the cut point, so the pipeline is
# re-run until it settles.
MAX_SANITIZE_PASSES = 4

IDENTITY_HASH_CHARS = 12


def _scrub(text: str) -> str:
    """Replace email, phone and long digit runs with the redaction marker."""
    marker = GatewayConfig.REDACTION_MARKER
    scrubbed = EMAIL_PATTERN.sub(marker, text)
    scrubbed = PHONE_PATTERN.sub(marker, scrubbed)
    return LONG_NUMBER_PATTERN.sub(marker, scrubbed)


def _normalize_lines(text: str) -> str:
    """Strip every line, drop blank ones and rejoin with newlines."""
    lines = (line.strip() for line in re.split(r"\r?\n", text))
    return "\n".join(line for line in lines if line)


def _sanitize_once(text: str, max_length: int) -> str:
    return _normalize_lines(_scrub(text))[:max_length].rstrip()


def sanitize_text(text: Optional[str], max_length: int) -> str:
    """
    Scrub PII patterns, normalize whitespace and cap length.

    Pure function: never raises, always returns a string (possibly empty).
    Idempotent for any input and cap.

    Args:
        text: Raw text (None is treated as empty)
        max_length: Maximum number of characters to keep

    Returns:
        Sanitized text

    Example:
        >>> sanitize_text("  Email me at kid@example.com  \\n\\n thanks ", 100)
        'Email me at [redacted]\\nthanks'
    """
    if not text or max_length <= 0:
        return ""

    result = _sanitize_once(text, max_length)
    for _ in range(MAX_SANITIZE_PASSES):
        settled = _sanitize_once(result, max_length)
        if settled == result:
            break
        result = settled
    return result


def sanitize_output(text: Optional[str]) -> str:
    """Sanitize a model reply with the response cap."""
    return sanitize_text(text, GatewayConfig.MAX_RESPONSE_CHARS)


def anonymize(value: Optional[str]) -> Optional[str]:
    """
    Reduce a raw identity (user id, client IP) to a short one-way hash.

    Args:
        value: Raw identity

    Returns:
        First 12 hex characters of its SHA-256, or None for empty input
    """
    if not value:
        return None
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:IDENTITY_HASH_CHARS]


def truncate_text(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Truncate text for log previews.

    Args:
        text: Text to truncate
        max_length: Maximum length including suffix
        suffix: Suffix to add when truncated

    Returns:
        Truncated text
    """
    if len(text) <= max_length:
        return text
    return text[: max_length - len(suffix)] + suffix
