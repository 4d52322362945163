"""
Login rate limiting: in-memory sliding window per client IP.
"""
import math
import threading
import time

from ems_api.config import RATE_LIMIT_LOGIN_PER_MINUTE


class SlidingWindowLimiter:
    def __init__(self, limit: int, window_seconds: int = 60):
        self.limit = limit
        self.window_seconds = window_seconds
        self._hits: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> int | None:
        """
        Record one attempt for key. Returns None when allowed, otherwise the
        Retry-After value in seconds (>= 1); rejected attempts are not recorded.
        """
        if self.limit <= 0:
            return None
        now = time.monotonic()
        with self._lock:
            recent = [t for t in self._hits.get(key, []) if t > now - self.window_seconds]
            if len(recent) >= self.limit:
                self._hits[key] = recent
                return max(1, math.ceil(self.window_seconds - (now - recent[0])))
            recent.append(now)
            self._hits[key] = recent
            return None

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


login_limiter = SlidingWindowLimiter(RATE_LIMIT_LOGIN_PER_MINUTE)
