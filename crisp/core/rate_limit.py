"""
In-memory sliding-window limiter for candidate access-code attempts.
"""
import logging
import threading
import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict
from fastapi import Request, HTTPException, status

from crisp.core.config import ACCESS_CODE_RATE_LIMIT, ACCESS_CODE_RATE_WINDOW_SECONDS

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """Extract client IP address from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # First hop is the original client
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


class SlidingWindowLimiter:
    """Allows at most max_requests per key within window_seconds."""

    def __init__(self, max_requests: int, window_seconds: int, clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def allow(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            hits = self._hits[key]
            while hits and hits[0] <= now - self.window_seconds:
                hits.popleft()
            if len(hits) >= self.max_requests:
                return False
            hits.append(now)
            return True

    def reset(self):
        with self._lock:
            self._hits.clear()


access_code_limiter = SlidingWindowLimiter(ACCESS_CODE_RATE_LIMIT, ACCESS_CODE_RATE_WINDOW_SECONDS)


def enforce_access_code_limit(request: Request) -> None:
    """
    FastAPI dependency guarding the access-code endpoint.
    
    Raises:
        HTTPException: 429 if the client exceeded its attempts
    """
    ip = get_client_ip(request)
    if not access_code_limiter.allow(ip):
        logger.warning(f"Access code rate limit exceeded for IP: {ip}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=(
                f"Too many access code attempts. Maximum {access_code_limiter.max_requests} "
                f"per {access_code_limiter.window_seconds} seconds."
            )
        )
