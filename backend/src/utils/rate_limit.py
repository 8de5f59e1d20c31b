"""Per-client fixed-window request rate limiting."""

import threading

from cachetools import TTLCache

DEFAULT_MAX_REQUESTS = 100
DEFAULT_WINDOW_SECONDS = 900  # 15 minutes
# Distinct clients tracked at once; the oldest windows are evicted first
MAX_TRACKED_CLIENTS = 10000


class RateLimiter:
    """Allow at most `max_requests` per client within each window.

    A client's window starts at its first request and ends when its TTLCache
    entry expires. Counters are mutated in place so later requests do not
    extend the window.
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        timer=None,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        cache_kwargs = {"maxsize": MAX_TRACKED_CLIENTS, "ttl": window_seconds}
        if timer is not None:
            cache_kwargs["timer"] = timer
        self._counters: TTLCache = TTLCache(**cache_kwargs)
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.max_requests > 0

    def allow(self, client_id: str) -> bool:
        """Record a request from `client_id` and report whether it is allowed."""
        if not self.enabled:
            return True

        with self._lock:
            counter = self._counters.get(client_id)
            if counter is None:
                self._counters[client_id] = [1]
                return True
            counter[0] += 1
            return counter[0] <= self.max_requests

    def clear(self) -> None:
        with self._lock:
            self._counters.clear()
