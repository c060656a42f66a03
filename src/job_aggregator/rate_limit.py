from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable

Clock = Callable[[], float]


class RateLimiter:
    """
    Sliding-window admission control keyed by provider.

    Every key is held to the fallback window (``default_requests`` per
    ``default_period``). A provider may declare its own window: one no longer
    than the fallback replaces it, a coarser one (an hourly budget, say) is
    enforced on top of it so the provider cannot burst its whole budget at once.
    """

    def __init__(
        self,
        default_requests: int = 15,
        default_period: float = 60.0,
        *,
        clock: Clock = time.monotonic,
    ):
        if default_requests < 1 or default_period <= 0:
            raise ValueError("rate limit must allow at least one request in a positive period")
        self._fallback = (default_requests, float(default_period))
        self._declared: dict[str, tuple[int, float]] = {}
        self._history: dict[str, deque[float]] = {}
        self._clock = clock
        self._lock = threading.Lock()

    def configure(self, key: str, requests: int, period: float) -> None:
        if requests < 1 or period <= 0:
            raise ValueError(f"invalid rate limit for {key}: {requests}/{period}s")
        with self._lock:
            self._declared[key] = (requests, float(period))

    def windows(self, key: str) -> list[tuple[int, float]]:
        declared = self._declared.get(key)
        if declared is None:
            return [self._fallback]
        if declared[1] > self._fallback[1]:
            return [declared, self._fallback]
        return [declared]

    def _prune(self, key: str, now: float) -> deque[float]:
        history = self._history.setdefault(key, deque())
        horizon = max(period for _, period in self.windows(key))
        while history and now - history[0] >= horizon:
            history.popleft()
        return history

    def _remaining(self, key: str, now: float) -> int:
        history = self._prune(key, now)
        remaining = []
        for cap, period in self.windows(key):
            used = sum(1 for stamp in history if now - stamp < period)
            remaining.append(cap - used)
        return max(0, min(remaining))

    def can_make_request(self, key: str) -> bool:
        with self._lock:
            return self._remaining(key, self._clock()) > 0

    def record_request(self, key: str) -> None:
        with self._lock:
            now = self._clock()
            self._prune(key, now).append(now)

    def get_remaining_requests(self, key: str) -> int:
        with self._lock:
            return self._remaining(key, self._clock())

    def try_acquire(self, key: str) -> bool:
        """Check and record in one step."""
        with self._lock:
            now = self._clock()
            if self._remaining(key, now) <= 0:
                return False
            self._history[key].append(now)
            return True

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._history.clear()
            else:
                self._history.pop(key, None)
