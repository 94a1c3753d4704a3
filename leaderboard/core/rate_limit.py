"""
Fixed-window rate limiting for public write endpoints

Counts live in process memory, so with several workers the limit is
per worker.  One limiter is created at startup and shared through
app.state; tests construct their own with a fake clock.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fastapi import Request


@dataclass
class RateLimitResult:
    allowed: bool
    current: int
    limit: int
    reset_at: float  # epoch seconds
    retry_after: int  # seconds until the window resets, 0 when allowed

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.current)


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """Allows max_requests per identifier in each window"""

    CLEANUP_INTERVAL = 1000

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Optional[Callable[[], float]] = None
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock or time.time
        self._windows: Dict[str, _Window] = {}
        self._checks = 0

    def check(self, identifier: str) -> RateLimitResult:
        now = self._clock()

        self._checks += 1
        if self._checks % self.CLEANUP_INTERVAL == 0:
            self._cleanup(now)

        window = self._windows.get(identifier)
        if window is None or now > window.reset_at:
            window = _Window(count=1, reset_at=now + self.window_seconds)
            self._windows[identifier] = window
            return RateLimitResult(True, 1, self.max_requests, window.reset_at, 0)

        window.count += 1
        allowed = window.count <= self.max_requests
        retry_after = 0 if allowed else max(1, int(window.reset_at - now + 0.999))
        return RateLimitResult(allowed, window.count, self.max_requests, window.reset_at, retry_after)

    def reset(self) -> None:
        self._windows.clear()

    def _cleanup(self, now: float) -> None:
        expired = [key for key, window in self._windows.items() if now > window.reset_at]
        for key in expired:
            del self._windows[key]


def get_client_identifier(request: Request) -> str:
    """Best guess at the caller's address behind proxies"""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        # First hop is the original client
        return forwarded_for.split(",")[0].strip()

    for header in ("x-real-ip", "cf-connecting-ip"):
        value = request.headers.get(header)
        if value:
            return value

    if request.client and request.client.host:
        return request.client.host
    return "unknown"
