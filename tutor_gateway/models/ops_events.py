"""
Ops Event Models for the Tutor Gateway

This module provides the telemetry events the gateway emits for every
request outcome and a bounded in-memory store that serves the ops snapshot.

Models:
    - OpsEvent: Single telemetry event
    - OpsEventStore: In-memory storage with retention and windowed snapshot
"""

from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field
import threading

from tutor_gateway.config import GatewayConfig


OpsEventType = Literal[
    "tutor_success",
    "tutor_error",
    "tutor_safety_block",
    "tutor_plan_limit",
    "tutor_latency",
]

OPS_EVENT_TYPES: tuple[str, ...] = (
    "tutor_success",
    "tutor_error",
    "tutor_safety_block",
    "tutor_plan_limit",
    "tutor_latency",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OpsEvent(BaseModel):
    """Single tutor telemetry event. Carries no identities."""

    type: OpsEventType = Field(
        description="Event type"
    )
    reason: Optional[str] = Field(
        default=None,
        description="Short reason (refusal reason, limit reason, error class)"
    )
    plan: Optional[str] = Field(
        default=None,
        description="Plan slug of the caller, if known"
    )
    status: Optional[int] = Field(
        default=None,
        description="HTTP-equivalent status for errors"
    )
    duration_ms: Optional[int] = Field(
        default=None,
        description="Duration for latency events"
    )
    model: Optional[str] = Field(
        default=None,
        description="Model id for success and latency events"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event was recorded"
    )


class OpsEventStore:
    """
    In-memory storage for ops events.

    Keeps at most max_events events and drops anything older than the
    retention period on every write and read.
    """

    def __init__(
        self,
        max_events: int = GatewayConfig.OPS_MAX_EVENTS,
        retain_seconds: int = GatewayConfig.OPS_RETAIN_SECONDS,
    ):
        """
        Initialize the event store.

        Args:
            max_events: Maximum events kept
            retain_seconds: Retention period in seconds
        """
        self._events: List[OpsEvent] = []
        self._lock = threading.Lock()
        self._max_events = max_events
        self._retain = timedelta(seconds=retain_seconds)

    def _prune(self, now: datetime) -> None:
        cutoff = now - self._retain
        self._events = [event for event in self._events if event.timestamp >= cutoff]
        if len(self._events) > self._max_events:
            self._events = self._events[-self._max_events:]

    def record(self, event_type: OpsEventType, **fields: Any) -> OpsEvent:
        """
        Record an event.

        Args:
            event_type: Event type
            **fields: Optional OpsEvent fields (reason, plan, status, ...)

        Returns:
            The stored event
        """
        event = OpsEvent(type=event_type, **fields)
        with self._lock:
            self._prune(event.timestamp)
            self._events.append(event)
        return event

    def snapshot(self, window_seconds: int = 60 * 60) -> Dict[str, Any]:
        """
        Summarize events within a trailing window.

        Args:
            window_seconds: Window length

        Returns:
            Dict with totals per type, top safety and plan-limit reasons,
            and the 30 most recent events (newest first)
        """
        now = _utcnow()
        cutoff = now - timedelta(seconds=window_seconds)
        with self._lock:
            self._prune(now)
            events = list(self._events)

        window_events = [event for event in events if event.timestamp >= cutoff]
        totals = {event_type: 0 for event_type in OPS_EVENT_TYPES}
        safety_reasons: Counter = Counter()
        plan_limit_reasons: Counter = Counter()

        for event in window_events:
            totals[event.type] += 1
            if event.type == "tutor_safety_block" and event.reason:
                safety_reasons[event.reason] += 1
            if event.type == "tutor_plan_limit" and event.reason:
                plan_limit_reasons[event.reason] += 1

        def top(counter: Counter) -> list[dict]:
            return [{"label": label, "count": count} for label, count in counter.most_common(5)]

        return {
            "window_seconds": window_seconds,
            "totals": totals,
            "top_safety_reasons": top(safety_reasons),
            "top_plan_limit_reasons": top(plan_limit_reasons),
            "recent": [event.model_dump(mode="json") for event in reversed(events[-30:])],
        }

    def clear(self) -> None:
        """Drop all events."""
        with self._lock:
            self._events = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
