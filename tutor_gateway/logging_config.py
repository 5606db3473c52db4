"""
Structured Logging Configuration for the Tutor Gateway

Every gateway log line is a structured event: a component tag, an event
name, hashed identities and an optional data payload. Raw user ids, IPs and
prompts never reach a log record; callers pass hashes only.

Record fields:
- component / event / outcome: what happened and where
- request_id / mode: one gateway request (set by the request adapter)
- learner / client: hashed identity keys
- model / attempts / status / duration_ms: upstream model calls
- data: free-form event payload

Usage:
    from tutor_gateway.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger("gateway")
    logger.info("Tutor reply sent", extra={"component": "gateway", "event": "tutor_success"})
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional
from pathlib import Path

from tutor_gateway.config import settings


# Structured fields copied from the record onto the JSON line, in this order
EVENT_FIELDS = ("component", "event", "outcome", "request_id", "mode")
IDENTITY_FIELDS = ("learner", "client")
CALL_FIELDS = ("step", "model", "attempts", "status", "duration_ms", "params", "output")
PAYLOAD_FIELDS = ("data", "error")

# Chatty third-party loggers and the level they are held at
QUIET_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "openai": logging.WARNING,
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,
}

TEXT_DATA_PREVIEW_CHARS = 160


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line, for log shipping.

    Output format:
    {
        "timestamp": "2026-10-18T10:23:45.123+00:00",
        "level": "WARNING",
        "logger": "tutor.gateway",
        "message": "Tutor tutor_safety_block: refused",
        "component": "gateway",
        "event": "tutor_safety_block",
        "request_id": "req_1a2b3c4d",
        "mode": "learning",
        "identity": {"learner": "3f2a9c0d11be", "client": "9be0a4417c2d"},
        "data": {"reason": "personal_contact", "plan": "family-free"}
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        entry: dict[str, Any] = {
            "timestamp": _record_time(record).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in EVENT_FIELDS + CALL_FIELDS + PAYLOAD_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value

        identity = {
            field: getattr(record, field)
            for field in IDENTITY_FIELDS
            if getattr(record, field, None)
        }
        if identity:
            entry["identity"] = identity

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """
    Single-line colored output for local development.

    Example:
        10:23:45.123  WARNING gateway  tutor_safety_block [req_1a2b3c4d learning] Tutor tutor_safety_block: refused
    """

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as text."""
        color = self.LEVEL_COLORS.get(record.levelname, "")
        component = getattr(record, "component", None) or record.name
        line = [
            _record_time(record).strftime("%H:%M:%S.%f")[:-3],
            f"{color}{record.levelname:>8}{self.RESET}",
            f"{component:<8}",
        ]

        event = getattr(record, "event", None)
        if event:
            line.append(event)

        request_tag = " ".join(
            str(value) for value in (getattr(record, "request_id", None), getattr(record, "mode", None)) if value
        )
        if request_tag:
            line.append(f"[{request_tag}]")

        line.append(record.getMessage())

        duration_ms = getattr(record, "duration_ms", None)
        if duration_ms is not None:
            line.append(f"({duration_ms}ms)")

        data = getattr(record, "data", None)
        if data:
            preview = json.dumps(data, default=str)
            if len(preview) > TEXT_DATA_PREVIEW_CHARS:
                preview = preview[:TEXT_DATA_PREVIEW_CHARS] + "..."
            line.append(preview)

        text = " ".join(line)
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


class ContextAdapter(logging.LoggerAdapter):
    """
    Logger adapter that stamps request context onto every record.

    Fields passed in a call's own ``extra`` win over the bound context.

    Usage:
        request_log = ContextAdapter(logger, {"request_id": "req_1a2b", "mode": "learning"})
        request_log.info("Composing prompt")
    """

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        """Merge the bound context under the call's extra fields."""
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging from settings.

    Console output uses LOG_FORMAT (json or text); the optional file handler
    always writes JSON at DEBUG. Safe to call more than once: existing root
    handlers are replaced.

    Args:
        level: Override for LOG_LEVEL
    """
    log_level = getattr(logging, level or settings.log_level)
    console_formatter = JSONFormatter() if settings.log_format == "json" else TextFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(console_formatter)
    console_handler.setLevel(log_level)
    handlers: list[logging.Handler] = [console_handler]

    if settings.log_to_file:
        log_path = Path(settings.log_file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)
    for handler in handlers:
        root_logger.addHandler(handler)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> logging.Logger:
    """
    Logger for a gateway component.

    Args:
        name: Component name (e.g., "gateway", "llm", "context")

    Returns:
        The ``tutor.<name>`` logger
    """
    return logging.getLogger(f"tutor.{name}")


def create_request_logger(
    base_logger: logging.Logger,
    request_id: str,
    mode: Optional[str] = None,
) -> ContextAdapter:
    """
    Create a logger adapter bound to a single gateway request.

    Args:
        base_logger: Base logger instance
        request_id: Request ID for this lifecycle
        mode: Tutor mode, when already known

    Returns:
        Logger adapter with context
    """
    context: dict[str, Any] = {"request_id": request_id}
    if mode:
        context["mode"] = mode
    return ContextAdapter(base_logger, context)


def log_gateway_event(
    logger: logging.Logger | logging.LoggerAdapter,
    event: str,
    outcome: str,
    learner: Optional[str] = None,
    client: Optional[str] = None,
    data: Optional[dict] = None,
    level: int = logging.INFO,
) -> None:
    """
    Log a gateway lifecycle event with consistent formatting.

    Identities must already be hashed; this helper never sees raw ids.

    Args:
        logger: Logger instance (or request adapter)
        event: Event type (e.g., "tutor_success", "tutor_rejected")
        outcome: Short outcome label (ok, refused, rate_limited, ...)
        learner: Hashed learner key
        client: Hashed client IP key
        data: Optional event data
        level: Log level
    """
    extra: dict[str, Any] = {
        "component": "gateway",
        "event": event,
        "outcome": outcome,
    }
    if learner:
        extra["learner"] = learner
    if client:
        extra["client"] = client
    if data:
        extra["data"] = data

    logger.log(level, f"Tutor {event}: {outcome}", extra=extra)


def log_llm_event(
    logger: logging.Logger | logging.LoggerAdapter,
    model: str,
    status: str,
    caller: str,
    attempt: str,
    params: Optional[dict] = None,
    output: Optional[dict] = None,
    error: Optional[str] = None,
    duration_ms: Optional[int] = None,
) -> None:
    """
    Log a model call event with consistent formatting.

    Args:
        logger: Logger instance
        model: Model id (e.g., "mistralai/mistral-7b-instruct:free")
        status: Status (starting, complete, failed)
        caller: Caller component
        attempt: Which attempt this is ("primary" or "fallback")
        params: Optional call parameters
        output: Optional output summary
        error: Optional error message
        duration_ms: Optional duration in milliseconds
    """
    extra: dict[str, Any] = {
        "step": "LLM_CALL",
        "status": status,
        "model": model,
        "component": caller,
        "attempts": attempt,
    }

    if params:
        extra["params"] = params
    if output:
        extra["output"] = output
    if error:
        extra["error"] = error
    if duration_ms is not None:
        extra["duration_ms"] = duration_ms

    level = logging.ERROR if status == "failed" else logging.INFO
    logger.log(level, f"LLM call {status} ({attempt}): {model}", extra=extra)
