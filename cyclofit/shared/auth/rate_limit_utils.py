"""
Sliding-window rate limiting for public endpoints (login, contact form).
In-memory and per process.
"""

import time
from collections import defaultdict, deque
from threading import Lock
from typing import Callable, Deque, Dict

from fastapi import HTTPException, Request, status


class RateLimiter:
    """Allow at most max_requests per identifier within window_seconds."""

    def __init__(self, name: str, max_requests: int, window_seconds: int, clock: Callable[[], float] = time.time):
        self.name = name
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._store: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = Lock()

    def check(self, identifier: str) -> None:
        """
        Record a request for identifier.

        Raises:
            HTTPException with 429 status if the limit is exceeded
        """
        now = self._clock()
        with self._lock:
            hits = self._store[identifier]
            while hits and hits[0] <= now - self.window_seconds:
                hits.popleft()

            if len(hits) >= self.max_requests:
                retry_after = int(hits[0] + self.window_seconds - now) + 1
                raise HTTPException(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    detail={
                        "error": "rate_limit_exceeded",
                        "message": f"Rate limit exceeded: {self.max_requests} requests per {self.window_seconds} seconds",
                        "retry_after_seconds": max(retry_after, 1),
                    },
                )
            hits.append(now)

            # Drop idle identifiers once the store grows large
            if len(self._store) > 1000:
                for key in [k for k, v in self._store.items() if not v]:
                    del self._store[key]

    def reset(self) -> None:
        with self._lock:
            self._store.clear()


def get_client_ip(request: Request) -> str:
    """Get client IP address from request, honouring a proxy's X-Forwarded-For."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


login_limiter = RateLimiter("login", max_requests=10, window_seconds=300)
contact_limiter = RateLimiter("contact", max_requests=3, window_seconds=3600)
