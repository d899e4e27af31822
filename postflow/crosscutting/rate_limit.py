"""
Name: Token Bucket Rate Limiter

Responsibilities:
  - Limit auth requests per client IP
  - Token bucket algorithm for smooth rate limiting
  - Return 429 with Retry-After header when rate exceeded

Collaborators:
  - config.py: AUTH_RATE_LIMIT_*, REFRESH_RATE_LIMIT_* settings
  - api/auth_routes.py: Applied as route dependencies (general + refresh)

Constraints:
  - In-memory storage (resets on restart, no persistence)
  - Thread-safe (sync route handlers run on a thread pool)

Notes:
  - "N requests per window" maps to burst=N, refill rate=N/window
  - Disabled limiters are no-op dependencies (development/test default)
"""

import threading
import time
from typing import Callable

from fastapi import Request

from .error_responses import rate_limited
from .logger import logger


class TokenBucket:
    """
    R: Per-key token bucket: `burst` tokens, refilled at `rps` per second,
    one token per request.

    Keys whose bucket has refilled completely carry no state and are evicted
    once more than `max_keys` are tracked.
    """

    def __init__(
        self,
        rps: float,
        burst: int,
        clock: Callable[[], float] = time.monotonic,
        max_keys: int = 10_000,
    ):
        if rps <= 0:
            raise ValueError("rps must be positive")
        if burst <= 0:
            raise ValueError("burst must be positive")

        self.rps = rps
        self.burst = burst
        self._clock = clock
        self._max_keys = max_keys
        # R: key -> (tokens, monotonic stamp of the last refill)
        self._state: dict[str, tuple[float, float]] = {}
        self._lock = threading.Lock()

    @classmethod
    def per_window(
        cls,
        requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> "TokenBucket":
        """R: `requests` per `window_seconds`, all of them usable as a burst."""
        return cls(rps=requests / window_seconds, burst=requests, clock=clock)

    def _level(self, key: str, now: float) -> float:
        tokens, stamp = self._state.get(key, (float(self.burst), now))
        return min(float(self.burst), tokens + (now - stamp) * self.rps)

    def _evict_full(self, now: float) -> None:
        full = [key for key in self._state if self._level(key, now) >= self.burst]
        for key in full:
            del self._state[key]

    def consume(self, key: str) -> tuple[bool, float]:
        """
        R: Take one token for `key`.

        Returns:
            (allowed, seconds until a token is available)
        """
        with self._lock:
            now = self._clock()
            level = self._level(key, now)
            if level < 1:
                self._state[key] = (level, now)
                return False, (1 - level) / self.rps

            self._state[key] = (level - 1, now)
            if len(self._state) > self._max_keys:
                self._evict_full(now)
            return True, 0.0

    def get_remaining(self, key: str) -> int:
        with self._lock:
            return int(self._level(key, self._clock()))

    def clear(self) -> None:
        with self._lock:
            self._state.clear()


def get_client_identifier(request: Request) -> str:
    """
    R: Get identifier for rate limiting.

    Priority:
      1. X-Forwarded-For header (first hop, behind proxy)
      2. Client IP address
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return f"ip:{forwarded_for.split(',')[0].strip()}"

    client = request.client
    if client:
        return f"ip:{client.host}"

    return "ip:unknown"


class RateLimitDependency:
    """
    R: FastAPI dependency applying a TokenBucket per client.

    Usage:
        router = APIRouter(dependencies=[Depends(limiter)])
    """

    def __init__(self, name: str, bucket: TokenBucket | None, message: str):
        self.name = name
        self.bucket = bucket
        self.message = message

    @property
    def enabled(self) -> bool:
        return self.bucket is not None

    def __call__(self, request: Request) -> None:
        if self.bucket is None:
            return

        client_id = get_client_identifier(request)
        allowed, retry_after = self.bucket.consume(client_id)
        if allowed:
            return

        logger.warning(
            "Rate limit exceeded",
            extra={
                "limiter": self.name,
                "client_id": client_id,
                "retry_after": round(retry_after, 2),
            },
        )
        raise rate_limited(max(1, int(retry_after) + 1), self.message)


def build_auth_rate_limiters(settings) -> tuple[RateLimitDependency, RateLimitDependency]:
    """
    R: Build the (general auth, refresh) limiters from settings.

    Both are no-ops unless rate limiting is enabled (production by default).
    """
    enabled = settings.is_rate_limiting_enabled()
    auth_bucket = refresh_bucket = None
    if enabled:
        auth_bucket = TokenBucket.per_window(
            settings.auth_rate_limit_requests,
            settings.auth_rate_limit_window_seconds,
        )
        refresh_bucket = TokenBucket.per_window(
            settings.refresh_rate_limit_requests,
            settings.refresh_rate_limit_window_seconds,
        )
    return (
        RateLimitDependency(
            "auth",
            auth_bucket,
            "Too many authentication attempts, please try again later.",
        ),
        RateLimitDependency(
            "refresh",
            refresh_bucket,
            "Too many refresh attempts, please try again later.",
        ),
    )
