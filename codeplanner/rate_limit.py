"""In-memory sliding-window rate limiter keyed by caller identity.

Single-process and best-effort: state lives in this object only.
"""
from __future__ import annotations

from typing import Callable, Dict, List
import math
import time

from codeplanner.errors import RateLimitExceeded

DEFAULT_MAX_REQUESTS = 10
DEFAULT_WINDOW_SECONDS = 60.0


class RateLimiter:
    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, List[float]] = {}

    @classmethod
    def from_config(cls, settings: Dict[str, object] | None) -> "RateLimiter":
        settings = settings or {}
        return cls(
            max_requests=int(settings.get("max_requests", DEFAULT_MAX_REQUESTS)),
            window_seconds=float(settings.get("window_seconds", DEFAULT_WINDOW_SECONDS)),
        )

    def _prune(self, key: str, now: float) -> List[float]:
        valid = [t for t in self._hits.get(key, []) if now - t < self.window_seconds]
        if valid:
            self._hits[key] = valid
        else:
            self._hits.pop(key, None)
        return valid

    def check(self, key: str) -> bool:
        """Record one request for ``key``; False when the window is already full."""
        now = self._clock()
        valid = self._prune(key, now)
        if len(valid) >= self.max_requests:
            return False
        self._hits[key] = valid + [now]
        return True

    def admit(self, key: str) -> None:
        now = self._clock()
        if self.check(key):
            return
        hits = self._hits.get(key)
        if hits:
            retry_after = max(1, math.ceil(hits[0] + self.window_seconds - now))
        else:
            # max_requests <= 0 admits nobody and records nothing
            retry_after = max(1, math.ceil(self.window_seconds))
        raise RateLimitExceeded(retry_after)

    def remaining(self, key: str) -> int:
        return max(0, self.max_requests - len(self._prune(key, self._clock())))

    def clear(self, key: str) -> None:
        self._hits.pop(key, None)

    def cleanup(self) -> int:
        """Drop expired timestamps for every key; returns how many keys were removed."""
        now = self._clock()
        before = len(self._hits)
        for key in list(self._hits):
            self._prune(key, now)
        return before - len(self._hits)
