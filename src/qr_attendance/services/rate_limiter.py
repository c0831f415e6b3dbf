from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

DEFAULT_LIMIT = 10
DEFAULT_WINDOW_SECONDS = 60.0
PRUNE_THRESHOLD = 1024


class ScanRateLimitExceeded(RuntimeError):
    """Raised when a requester has used up its scan attempts for the window."""

    def __init__(self, key: str, retry_after: float) -> None:
        super().__init__(f"Rate limit exceeded for {key}; retry in {retry_after:.1f}s.")
        self.key = key
        self.retry_after = retry_after


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after: float


@dataclass(slots=True)
class _Window:
    started_at: float
    count: int


class ScanRateLimiter:
    """Fixed-window attempt counter keyed by requester.

    A limit of zero or less disables throttling. Counters live in this
    process only, which is enough to blunt signature guessing and scan storms
    from a single client.
    """

    def __init__(
        self,
        limit: int = DEFAULT_LIMIT,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive.")
        self._limit = int(limit)
        self._window_seconds = float(window_seconds)
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def hit(self, key: str) -> RateLimitDecision:
        if self._limit <= 0:
            return RateLimitDecision(allowed=True, remaining=0, retry_after=0.0)

        with self._lock:
            now = self._clock()
            if len(self._windows) >= PRUNE_THRESHOLD:
                self._prune(now)

            window = self._windows.get(key)
            if window is None or now - window.started_at >= self._window_seconds:
                window = _Window(started_at=now, count=0)
                self._windows[key] = window

            retry_after = max(0.0, window.started_at + self._window_seconds - now)
            if window.count >= self._limit:
                return RateLimitDecision(allowed=False, remaining=0, retry_after=retry_after)

            window.count += 1
            return RateLimitDecision(
                allowed=True,
                remaining=self._limit - window.count,
                retry_after=retry_after,
            )

    def check(self, key: str) -> RateLimitDecision:
        decision = self.hit(key)
        if not decision.allowed:
            raise ScanRateLimitExceeded(key, decision.retry_after)
        return decision

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)

    def _prune(self, now: float) -> None:
        stale = [
            key
            for key, window in self._windows.items()
            if now - window.started_at >= self._window_seconds
        ]
        for key in stale:
            del self._windows[key]
