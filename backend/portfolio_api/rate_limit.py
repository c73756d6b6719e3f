import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .errors import RateLimited


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """Counts attempts per key in a fixed window that resets lazily once it has passed."""

    def __init__(
        self,
        max_attempts: int,
        window_seconds: float,
        message: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.message = message
        self._clock = clock
        self._windows: Dict[str, _Window] = {}

    def hit(self, key: str) -> None:
        now = self._clock()
        window = self._windows.get(key)
        if window is None or now > window.reset_at:
            self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
            return
        if window.count >= self.max_attempts:
            raise RateLimited(self.message, retry_after=max(1, math.ceil(window.reset_at - now)))
        window.count += 1

    def remaining(self, key: str) -> int:
        window = self._windows.get(key)
        if window is None or self._clock() > window.reset_at:
            return self.max_attempts
        return max(0, self.max_attempts - window.count)

    def sweep(self) -> int:
        now = self._clock()
        expired = [key for key, window in self._windows.items() if now > window.reset_at]
        for key in expired:
            del self._windows[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._windows)
