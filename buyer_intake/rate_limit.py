"""Sliding window rate limiting for mutating lead operations."""
import math
import threading
import time
from typing import Any, Callable, Dict, List, Mapping, Optional


DEFAULT_KEY = "default"
DEFAULT_RETRY_SECONDS = 60

OPERATIONS = ("create", "update", "import")


class RateLimiter:
    """Timestamp log limiter: admits at most ``max_requests`` per trailing ``window_seconds``.

    Each key keeps the timestamps of its admitted calls. Stale entries are
    dropped on every query, so a burst straddling a window edge is still
    counted against the same budget.
    """

    def __init__(self, max_requests: int = 10, window_seconds: float = 60.0, clock: Callable[[], float] = time.time) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = int(max_requests)
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: Dict[str, List[float]] = {}

    def _live(self, key: str, now: float) -> List[float]:
        start = now - self.window_seconds
        return [t for t in self._windows.get(key, ()) if t > start]

    def is_allowed(self, key: str = DEFAULT_KEY) -> bool:
        with self._lock:
            now = self._clock()
            window = self._live(key, now)
            self._windows[key] = window
            if len(window) < self.max_requests:
                window.append(now)
                return True
            return False

    def get_remaining_requests(self, key: str = DEFAULT_KEY) -> int:
        with self._lock:
            used = len(self._live(key, self._clock()))
        return max(0, self.max_requests - used)

    def get_reset_time(self, key: str = DEFAULT_KEY) -> Optional[float]:
        with self._lock:
            window = self._live(key, self._clock())
        if not window:
            return None
        return min(window) + self.window_seconds

    def retry_after(self, key: str = DEFAULT_KEY) -> int:
        reset = self.get_reset_time(key)
        if reset is None:
            return DEFAULT_RETRY_SECONDS
        return max(1, math.ceil(reset - self._clock()))


class RateLimiterRegistry:
    """One limiter per mutating operation, built once and handed to the gateway."""

    def __init__(self, limiters: Mapping[str, RateLimiter]) -> None:
        self._limiters = dict(limiters)

    @classmethod
    def from_settings(cls, settings: Dict[str, Any], clock: Callable[[], float] = time.time) -> "RateLimiterRegistry":
        limits = settings.get("rate_limits", {})
        missing = [op for op in OPERATIONS if op not in limits]
        if missing:
            raise ValueError(f"rate_limits is missing operations: {', '.join(missing)}")
        return cls({
            op: RateLimiter(int(cfg["max_requests"]), float(cfg["window_seconds"]), clock=clock)
            for op, cfg in limits.items()
        })

    @classmethod
    def default(cls, clock: Callable[[], float] = time.time) -> "RateLimiterRegistry":
        from .config import DEFAULT_SETTINGS
        return cls.from_settings(DEFAULT_SETTINGS, clock=clock)

    def for_operation(self, operation: str) -> RateLimiter:
        try:
            return self._limiters[operation]
        except KeyError:
            raise ValueError(f"No rate limiter configured for {operation!r}") from None

    def operations(self) -> List[str]:
        return list(self._limiters)
