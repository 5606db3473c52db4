"""
Daily Usage Ledger for the Tutor Gateway

This module tracks tutor requests per identity against a plan-derived daily
quota. Counters are bucketed by UTC date: a record from an earlier day is
read as zero and is never carried over.

Usage:
    from tutor_gateway.services.usage_ledger import InMemoryUsageLedger

    ledger = InMemoryUsageLedger()
    remaining = ledger.enforce(limit=3, key="3f2a9c0d11be", plan_slug="family-free")
    ...  # call the model
    remaining = ledger.record(limit=3, key="3f2a9c0d11be")
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Protocol
import threading

from tutor_gateway.exceptions import PaymentRequiredError
from tutor_gateway.logging_config import get_logger
from tutor_gateway.models.context import DailyLimit


logger = get_logger("usage_ledger")


@dataclass
class DailyUsageRecord:
    """Requests counted for one key on one UTC date."""

    date: str
    count: int


def utc_today() -> str:
    """Current UTC date as YYYY-MM-DD."""
    return datetime.now(timezone.utc).date().isoformat()


def is_unlimited(limit: DailyLimit) -> bool:
    """Whether a limit disables enforcement."""
    return limit is None or limit == "unlimited"


def plan_label(plan_slug: Optional[str]) -> str:
    """Readable plan label for user-facing messages (family-free -> family free)."""
    if not plan_slug:
        return ""
    return plan_slug.replace("-", " ").replace("_", " ")


def merge_tutor_limits(plan_limit: DailyLimit, learner_limit: Optional[int]) -> DailyLimit:
    """
    Combine a plan limit with a learner-level cap set by a grown-up.

    The stricter of the two wins, so a zero plan limit stays zero. Negative
    learner caps count as zero, and an unlimited or absent plan limit yields
    the learner cap.

    Args:
        plan_limit: Limit from the billing plan
        learner_limit: Cap stored on the learner profile, if any

    Returns:
        Effective daily limit

    Example:
        >>> merge_tutor_limits(3, 1)
        1
        >>> merge_tutor_limits("unlimited", 2)
        2
    """
    if learner_limit is None:
        return plan_limit
    learner_cap = max(0, learner_limit)
    if is_unlimited(plan_limit):
        return learner_cap
    return min(plan_limit, learner_cap)


# ===========================================
# Protocol (Interface)
# ===========================================


class UsageLedger(Protocol):
    """Protocol for daily quota accounting."""

    def usage(self, key: str) -> int:
        """Requests recorded for key today."""
        ...

    def enforce(self, limit: DailyLimit, key: str, plan_slug: Optional[str] = None) -> Optional[int]:
        """Raise if key has no quota left today; return the remaining count."""
        ...

    def record(self, limit: DailyLimit, key: str) -> Optional[int]:
        """Count one request for key today; return the remaining count."""
        ...


# ===========================================
# In-Memory Implementation
# ===========================================


class InMemoryUsageLedger:
    """
    In-memory usage ledger keyed by hashed identity.

    Attributes:
        _records: Dict mapping key to its DailyUsageRecord
        _today: UTC date source, injectable for tests
    """

    def __init__(self, today: Optional[Callable[[], str]] = None):
        """
        Initialize the ledger.

        Args:
            today: Callable returning the current UTC date (YYYY-MM-DD)
        """
        self._records: Dict[str, DailyUsageRecord] = {}
        self._today = today or utc_today
        self._lock = threading.Lock()
        self._current_date: Optional[str] = None

    def usage(self, key: str) -> int:
        """
        Requests recorded for key on the current UTC date.

        Read-only: a stale record is reported as zero and left for the next
        record() to drop.
        """
        with self._lock:
            record = self._records.get(key)
            if record is None or record.date != self._today():
                return 0
            return record.count

    def enforce(self, limit: DailyLimit, key: str, plan_slug: Optional[str] = None) -> Optional[int]:
        """
        Check the daily quota without consuming it.

        Args:
            limit: Daily limit (None or "unlimited" disables enforcement)
            key: Hashed identity key
            plan_slug: Plan slug for the upgrade message

        Returns:
            Remaining requests today, or None when unlimited

        Raises:
            PaymentRequiredError: If today's usage already reached the limit
        """
        if is_unlimited(limit):
            return None

        used = self.usage(key)
        if used >= limit:
            label = plan_label(plan_slug)
            on_plan = f" on your {label} plan" if label else ""
            logger.warning(
                "Daily tutor limit reached",
                extra={
                    "component": "usage_ledger",
                    "event": "daily_limit",
                    "learner": key,
                    "data": {"limit": limit, "used": used, "plan": plan_slug},
                },
            )
            raise PaymentRequiredError(
                f"You've reached today's AI tutor limit{on_plan}. "
                "Upgrade to get more help or try again tomorrow.",
                plan=plan_slug,
                reason="daily_limit",
            )

        return max(0, limit - used)

    def record(self, limit: DailyLimit, key: str) -> Optional[int]:
        """
        Count one successful request.

        Args:
            limit: Daily limit (None or "unlimited" disables accounting)
            key: Hashed identity key

        Returns:
            Remaining requests today after this one, or None when unlimited
        """
        if is_unlimited(limit):
            return None

        today = self._today()
        with self._lock:
            if today != self._current_date:
                # New UTC day: earlier days' counters are never read again
                self._records = {
                    other: kept for other, kept in self._records.items() if kept.date == today
                }
                self._current_date = today
            record = self._records.get(key)
            if record is None or record.date != today:
                record = DailyUsageRecord(date=today, count=0)
                self._records[key] = record
            record.count += 1
            count = record.count

        return max(0, limit - count)

    def reset(self) -> None:
        """Forget all usage."""
        with self._lock:
            self._records.clear()

    def tracked_keys(self) -> int:
        """Number of keys currently holding a record."""
        with self._lock:
            return len(self._records)
