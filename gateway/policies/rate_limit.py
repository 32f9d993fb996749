"""
Rate Limiting Policy
Fixed-window request quota per client address, behind a feature flag
"""

import asyncio
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from fastapi import Request
import redis.asyncio as aioredis
from starlette.responses import Response
import structlog

from gateway.errors import RateLimitedError
from gateway.policies.base import CallNext, Policy

logger = structlog.get_logger(__name__)


def rate_limit_key(identifier: str, action: str) -> str:
    """
    Generate rate limit key

    Args:
        identifier: Client identifier (IP address)
        action: Action being rate limited

    Returns:
        Rate limit key
    """
    return f"rate_limit:{action}:{identifier}"


@dataclass(frozen=True)
class WindowState:
    """Hits counted in the current window and seconds until it resets"""

    count: int
    reset_in: float


class RateLimitStore(ABC):
    """Counter storage shared by every request of the process (or cluster)"""

    @abstractmethod
    async def hit(self, key: str, window_seconds: float) -> WindowState:
        """Count one request against ``key`` and return the window state"""

    async def aclose(self) -> None:
        """Release connections held by the store"""


class MemoryRateLimitStore(RateLimitStore):
    """In-process counters; increments are serialized with an asyncio lock"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._lock: Optional[asyncio.Lock] = None
        self._next_sweep = 0.0

    async def hit(self, key: str, window_seconds: float) -> WindowState:
        # Created inside the serving loop, not at import or app construction
        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            now = self._clock()
            self._sweep(now, window_seconds)

            expires_at, count = self._windows.get(key, (now + window_seconds, 0))
            if expires_at <= now:
                expires_at, count = now + window_seconds, 0

            count += 1
            self._windows[key] = (expires_at, count)
            return WindowState(count=count, reset_in=expires_at - now)

    def _sweep(self, now: float, window_seconds: float) -> None:
        if now < self._next_sweep:
            return
        self._windows = {
            k: v for k, v in self._windows.items()
            if v[0] > now
        }
        self._next_sweep = now + window_seconds

    def __len__(self) -> int:
        return len(self._windows)


class RedisRateLimitStore(RateLimitStore):
    """Counters in Redis so every gateway process shares one quota"""

    def __init__(self, client: aioredis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisRateLimitStore":
        return cls(aioredis.from_url(redis_url, decode_responses=True))

    async def hit(self, key: str, window_seconds: float) -> WindowState:
        window_ms = max(1, int(window_seconds * 1000))

        count = await self.client.incr(key)
        if count == 1:
            await self.client.pexpire(key, window_ms)

        ttl_ms = await self.client.pttl(key)
        if ttl_ms < 0:
            # Key lost its expiry (e.g. set by an older writer); restart the window
            await self.client.pexpire(key, window_ms)
            ttl_ms = window_ms

        return WindowState(count=int(count), reset_in=ttl_ms / 1000.0)

    async def aclose(self) -> None:
        await self.client.aclose()
        logger.info("Redis rate limit store closed")


class NoopRateLimitPolicy(Policy):
    """Rate limiting switched off: every request passes"""

    name = "rate_limit"

    async def process(self, request: Request, call_next: CallNext) -> Response:
        return await call_next(request)


class FixedWindowRateLimitPolicy(Policy):
    """
    Reject clients that exceed ``max_requests`` within one window.

    Only paths under ``path_prefix`` count against the quota. Requests over
    the limit fail with a rate-limited error before reaching any handler.
    """

    name = "rate_limit"

    def __init__(
        self,
        store: RateLimitStore,
        window_seconds: float,
        max_requests: int,
        path_prefix: str = "/api/",
        action: str = "api",
    ):
        self.store = store
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.path_prefix = path_prefix
        self.action = action

    def applies_to(self, path: str) -> bool:
        return path.startswith(self.path_prefix) or path == self.path_prefix.rstrip("/")

    async def process(self, request: Request, call_next: CallNext) -> Response:
        if not self.applies_to(request.url.path):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        state = await self.store.hit(rate_limit_key(client_ip, self.action), self.window_seconds)

        reset_seconds = max(0, math.ceil(state.reset_in))
        headers = {
            "X-RateLimit-Limit": str(self.max_requests),
            "X-RateLimit-Remaining": str(max(0, self.max_requests - state.count)),
            "X-RateLimit-Reset": str(reset_seconds),
        }

        if state.count > self.max_requests:
            logger.warning(
                "Rate limit exceeded",
                client_ip=client_ip,
                count=state.count,
                max_requests=self.max_requests,
            )
            raise RateLimitedError(headers={**headers, "Retry-After": str(reset_seconds)})

        response = await call_next(request)
        response.headers.update(headers)
        return response

    async def aclose(self) -> None:
        await self.store.aclose()


def build_rate_limit_policy(
    enabled: bool,
    window_seconds: float,
    max_requests: int,
    path_prefix: str = "/api/",
    redis_url: Optional[str] = None,
    store: Optional[RateLimitStore] = None,
) -> Policy:
    """Pick the active or the no-op variant; callers never see the difference"""
    if not enabled:
        return NoopRateLimitPolicy()

    if store is None:
        store = RedisRateLimitStore.from_url(redis_url) if redis_url else MemoryRateLimitStore()

    return FixedWindowRateLimitPolicy(
        store=store,
        window_seconds=window_seconds,
        max_requests=max_requests,
        path_prefix=path_prefix,
    )
