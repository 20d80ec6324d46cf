from __future__ import annotations

import re
import threading
import time
from collections import deque

from placement.utils.errors import ApiError, ErrorCode

_UNITS = {"second": 1, "minute": 60, "hour": 3600}
_LIMIT_RE = re.compile(r"^\s*(\d+)\s*(?:per|/)\s*(second|minute|hour)s?\s*$", re.IGNORECASE)


def parse_limit(limit: str, default: tuple[int, int] = (300, 60)) -> tuple[int, int]:
    """``"30 per minute"`` -> ``(30, 60)``; unreadable limits fall back to ``default``."""
    m = _LIMIT_RE.match(str(limit or ""))
    if not m:
        return default
    return max(1, int(m.group(1))), _UNITS[m.group(2).lower()]


class InMemoryRateLimiter:
    """Sliding-window limiter keyed by caller; state is per process."""

    def __init__(self, *, max_keys: int = 50_000, clock=time.monotonic):
        self._max_keys = max_keys
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: dict[str, deque[float]] = {}

    def check(self, key: str, limit: str) -> None:
        allowed, window = parse_limit(limit)
        now = self._clock()

        with self._lock:
            if key not in self._hits and len(self._hits) >= self._max_keys:
                self._evict_idle(now, window)

            hits = self._hits.setdefault(key, deque())
            while hits and now - hits[0] >= window:
                hits.popleft()

            if len(hits) >= allowed:
                retry_after = max(1, int(window - (now - hits[0])))
                raise ApiError(ErrorCode.RATE_LIMITED, "Rate limit exceeded", details={"retryAfter": retry_after})
            hits.append(now)

    def _evict_idle(self, now: float, window: int) -> None:
        idle = [k for k, hits in self._hits.items() if not hits or now - hits[-1] >= window]
        for k in idle:
            del self._hits[k]
        if len(self._hits) >= self._max_keys:
            self._hits.clear()

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
