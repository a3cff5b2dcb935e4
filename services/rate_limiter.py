"""
In-memory rate limiters for outbound email.

Two policies, picked per call site:

IntervalRateLimiter       — one action per key per interval ("resend this
                            email" buttons, keyed by address).
SlidingWindowRateLimiter  — at most N actions per key inside a moving window
                            (per-IP abuse control).

check() never records anything; callers invoke mark_sent() only once the
action actually happened, so a failed send does not burn the caller's quota.
Both are process-local and hold no locks; every method runs to completion
without awaiting.
"""

from __future__ import annotations

import math
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable

from shared.logging import get_logger

log = get_logger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining_seconds: int = 0

    @classmethod
    def allow(cls) -> "RateLimitDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, remaining: float) -> "RateLimitDecision":
        return cls(allowed=False, remaining_seconds=max(1, math.ceil(remaining)))


class IntervalRateLimiter:
    def __init__(self, interval_seconds: float = 60, clock: Clock = time.monotonic) -> None:
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._last_sent: dict[str, float] = {}

    def check(self, key: str) -> RateLimitDecision:
        last = self._last_sent.get(key)
        if last is None:
            return RateLimitDecision.allow()
        elapsed = self._clock() - last
        if elapsed >= self.interval_seconds:
            return RateLimitDecision.allow()
        return RateLimitDecision.deny(self.interval_seconds - elapsed)

    def mark_sent(self, key: str) -> None:
        self._last_sent[key] = self._clock()

    def purge(self) -> int:
        """Forget keys whose interval has fully elapsed. Returns the number dropped."""
        cutoff = self._clock() - self.interval_seconds
        stale = [key for key, ts in self._last_sent.items() if ts <= cutoff]
        for key in stale:
            del self._last_sent[key]
        return len(stale)

    def reset(self) -> None:
        self._last_sent.clear()

    def __len__(self) -> int:
        return len(self._last_sent)


class SlidingWindowRateLimiter:
    def __init__(
        self,
        limit: int = 10,
        window_seconds: float = 3600,
        clock: Clock = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._events: dict[str, deque[float]] = {}

    def _evict(self, key: str, now: float) -> deque[float]:
        events = self._events.get(key)
        if events is None:
            return deque()
        cutoff = now - self.window_seconds
        while events and events[0] <= cutoff:
            events.popleft()
        if not events:
            del self._events[key]
        return events

    def check(self, key: str) -> RateLimitDecision:
        now = self._clock()
        events = self._evict(key, now)
        if len(events) < self.limit:
            return RateLimitDecision.allow()
        # The oldest live entry is the next one to age out of the window
        return RateLimitDecision.deny(events[0] + self.window_seconds - now)

    def mark_sent(self, key: str) -> None:
        now = self._clock()
        self._evict(key, now)
        events = self._events.setdefault(key, deque(maxlen=self.limit))
        events.append(now)

    def count(self, key: str) -> int:
        return len(self._evict(key, self._clock()))

    def purge(self) -> int:
        now = self._clock()
        before = len(self._events)
        for key in list(self._events):
            self._evict(key, now)
        return before - len(self._events)

    def reset(self) -> None:
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)


def purge_limiters(*limiters: IntervalRateLimiter | SlidingWindowRateLimiter) -> int:
    """Maintenance entry point run by the scheduler."""
    dropped = sum(limiter.purge() for limiter in limiters)
    if dropped:
        log.debug("rate_limit_keys_purged", dropped=dropped)
    return dropped
