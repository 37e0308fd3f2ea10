"""In-process sliding-window request counters per provider (per minute and per day)."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable

from core.models import ProviderConfig

MINUTE_SEC = 60.0
DAY_SEC = 86_400.0


class RateLimitTracker:
    """Thread-safe; try_acquire counts a request only when both windows have room."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._minute: dict[str, deque[float]] = {}
        self._day: dict[str, deque[float]] = {}

    @staticmethod
    def _trim(window: deque[float], now: float, span: float) -> None:
        while window and now - window[0] >= span:
            window.popleft()

    def try_acquire(self, provider: ProviderConfig) -> bool:
        now = self._clock()
        with self._lock:
            minute = self._minute.setdefault(provider.name, deque())
            day = self._day.setdefault(provider.name, deque())
            self._trim(minute, now, MINUTE_SEC)
            self._trim(day, now, DAY_SEC)
            if len(minute) >= provider.rate_limit.per_minute or len(day) >= provider.rate_limit.per_day:
                return False
            minute.append(now)
            day.append(now)
            return True

    def usage(self, name: str) -> tuple[int, int]:
        """(requests in last minute, requests in last day)."""
        now = self._clock()
        with self._lock:
            minute = self._minute.get(name, deque())
            day = self._day.get(name, deque())
            self._trim(minute, now, MINUTE_SEC)
            self._trim(day, now, DAY_SEC)
            return len(minute), len(day)
