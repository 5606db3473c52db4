"""
Sliding-Window Rate Limiter for the Tutor Gateway

This module bounds request bursts per identity key using the Protocol
pattern, so the in-memory limiter can be swapped for a shared store.

Design:
- Protocol-based interface (check -> RateLimitDecision)
- In-memory implementation keyed by hashed identity
- State lives for the lifetime of the process; a restart resets it

Usage:
    from tutor_gateway.services.rate_limiter import SlidingWindowRateLimiter

    limiter = SlidingWindowRateLimiter(limit=12, window_seconds=300, name="learner")
    decision = limiter.check("user:3f2a9c0d11be")
    if not decision.allowed:
        ...
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol
import threading
import time

from tutor_gateway.logging_config import get_logger


logger = get_logger("limiter")


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a limiter check."""

    allowed: bool
    remaining: int


# ===========================================
# Protocol (Interface)
# ===========================================


class RateLimiter(Protocol):
    """
    Protocol for burst limiters.

    A check both records the request and decides on it, so callers never
    have to pair a read with a separate write.
    """

    name: str

    def check(self, key: str) -> RateLimitDecision:
        """Record a request for key and decide whether it is allowed."""
        ...

    def reset(self) -> None:
        """Forget all recorded requests."""
        ...


# ===========================================
# In-Memory Implementation
# ===========================================


class SlidingWindowRateLimiter:
    """
    In-memory sliding-window limiter.

    Keeps, per key, the timestamps of requests inside the trailing window.
    Old entries are purged before every check, the current request is
    appended, and the resulting length is compared with the limit. Once per
    window, keys with no request inside the window are dropped.

    Attributes:
        limit: Requests allowed per window
        window_seconds: Window length in seconds
        name: Label used in logs ("learner", "ip")
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        name: str = "limiter",
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the limiter.

        Args:
            limit: Requests allowed per window
            window_seconds: Window length in seconds
            name: Label used in logs
            clock: Monotonic time source (seconds), injectable for tests
        """
        self.limit = limit
        self.window_seconds = window_seconds
        self.name = name
        self._clock = clock or time.monotonic
        self._hits: Dict[str, List[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = self._clock()

    def check(self, key: str) -> RateLimitDecision:
        """
        Record a request for key and decide on it.

        Args:
            key: Hashed identity key

        Returns:
            RateLimitDecision; allowed is False once the window holds more
            than limit requests, remaining is clamped at zero
        """
        now = self._clock()
        window_start = now - self.window_seconds

        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(window_start)
                self._last_sweep = now
            recent = [ts for ts in self._hits.get(key, []) if ts > window_start]
            recent.append(now)
            self._hits[key] = recent
            count = len(recent)

        decision = RateLimitDecision(
            allowed=count <= self.limit,
            remaining=max(0, self.limit - count),
        )

        if not decision.allowed:
            logger.debug(
                f"Rate limit exceeded ({self.name})",
                extra={
                    "component": "limiter",
                    "event": "limit_exceeded",
                    "data": {"limiter": self.name, "count": count, "limit": self.limit},
                },
            )

        return decision

    def _sweep(self, window_start: float) -> None:
        """Drop keys whose newest request fell out of the window. Caller holds the lock."""
        stale = [key for key, hits in self._hits.items() if hits[-1] <= window_start]
        for key in stale:
            del self._hits[key]
        if stale:
            logger.debug(
                f"Dropped {len(stale)} idle keys ({self.name})",
                extra={
                    "component": "limiter",
                    "event": "keys_swept",
                    "data": {"limiter": self.name, "dropped": len(stale), "kept": len(self._hits)},
                },
            )

    def reset(self) -> None:
        """Forget all recorded requests."""
        with self._lock:
            self._hits.clear()

    def tracked_keys(self) -> int:
        """Number of keys currently tracked."""
        with self._lock:
            return len(self._hits)
