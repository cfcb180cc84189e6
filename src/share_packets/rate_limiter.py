"""Sliding-window rate limiting for the public access endpoint.

Attempts are counted per client key (remote address). The limiter holds no
information about packets, so it cannot delay a revocation or expiry from
taking effect; it only slows down token and passcode guessing.
"""
from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from threading import Lock
from typing import Callable


@dataclass(frozen=True)
class RateLimitConfig:
    """At most ``max_requests`` attempts per key in any ``window_seconds``."""
    max_requests: int
    window_seconds: float
    description: str = ''


class RateLimitExceeded(Exception):
    """Raised when a key has used up its window."""

    def __init__(self, key: str, config: RateLimitConfig, retry_after: float):
        self.key = key
        self.config = config
        self.retry_after = retry_after
        super().__init__(
            f'{config.description or "rate limit"} exceeded for {key}: '
            f'{config.max_requests} per {config.window_seconds:g}s, '
            f'retry in {retry_after:.1f}s'
        )


class SlidingWindowCounter:
    """Thread-safe per-key sliding window.

    Args:
        config: Limit to enforce.
        clock: Monotonic seconds; ``time.monotonic`` by default.
    """

    def __init__(
        self,
        config: RateLimitConfig,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = Lock()

    def _evict(self, hits: deque[float], now: float) -> None:
        cutoff = now - self.config.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()

    def check(self, key: str, now: float | None = None) -> None:
        """Record one attempt for ``key``.

        Raises:
            RateLimitExceeded: The window is full; nothing is recorded.
        """
        now = self._clock() if now is None else now
        with self._lock:
            hits = self._hits.setdefault(key, deque())
            self._evict(hits, now)
            if len(hits) >= self.config.max_requests:
                wait = hits[0] + self.config.window_seconds - now
                raise RateLimitExceeded(key, self.config, max(wait, 0.1))
            hits.append(now)

    def current_count(self, key: str, now: float | None = None) -> int:
        now = self._clock() if now is None else now
        with self._lock:
            hits = self._hits.get(key)
            if not hits:
                return 0
            self._evict(hits, now)
            return len(hits)

    def prune(self, now: float | None = None) -> int:
        """Forget keys with no attempts left in the window; returns how many."""
        now = self._clock() if now is None else now
        with self._lock:
            idle = []
            for key, hits in self._hits.items():
                self._evict(hits, now)
                if not hits:
                    idle.append(key)
            for key in idle:
                del self._hits[key]
            return len(idle)

    def reset_all(self) -> None:
        with self._lock:
            self._hits.clear()


DEFAULT_PUBLIC_ACCESS_LIMIT = RateLimitConfig(
    max_requests=30,
    window_seconds=60,
    description='Public share-packet access attempts',
)
