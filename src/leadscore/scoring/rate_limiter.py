"""Fixed-window admission control for model gateway calls."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_KEY = "default"


class RateLimiter:
    """Allow at most ``max_calls`` per key in each ``window_ms`` window.

    Windows are aligned to multiples of ``window_ms`` on the limiter's clock,
    so every key rolls over at the same deterministic boundaries.
    """

    def __init__(
        self,
        max_calls: int = 100,
        window_ms: int = 60_000,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_calls < 1:
            raise ValueError("max_calls must be >= 1")
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")
        self.max_calls = max_calls
        self.window_ms = window_ms
        self._clock = clock
        self._sleep = sleep
        self._windows: dict[str, tuple[int, int]] = {}
        self._lock = threading.Lock()

    def _window_index(self, now: float) -> int:
        return int(now * 1000 // self.window_ms)

    def _used(self, key: str, window: int) -> int:
        current = self._windows.get(key)
        if current is None or current[0] != window:
            return 0
        return current[1]

    def try_acquire(self, key: str = DEFAULT_KEY) -> bool:
        """Take one token for ``key`` if the current window has any left."""

        with self._lock:
            window = self._window_index(self._clock())
            used = self._used(key, window)
            if used >= self.max_calls:
                return False
            self._windows[key] = (window, used + 1)
            return True

    def acquire(self, key: str = DEFAULT_KEY, timeout: float | None = None) -> bool:
        """Block until a token is available or ``timeout`` seconds have passed."""

        deadline = None if timeout is None else self._clock() + timeout
        while True:
            if self.try_acquire(key):
                return True
            now = self._clock()
            wait = self.seconds_until_reset(now)
            if deadline is not None:
                if now >= deadline:
                    return False
                wait = min(wait, deadline - now)
            logger.debug("Rate limit reached for %s, waiting %.3fs", key, wait)
            self._sleep(max(wait, 0.001))

    def remaining(self, key: str = DEFAULT_KEY) -> int:
        with self._lock:
            window = self._window_index(self._clock())
            return self.max_calls - self._used(key, window)

    def seconds_until_reset(self, now: float | None = None) -> float:
        current = self._clock() if now is None else now
        window = self._window_index(current)
        return (window + 1) * self.window_ms / 1000.0 - current

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)


__all__ = ["RateLimiter", "DEFAULT_KEY"]
