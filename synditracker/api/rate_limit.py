"""
Per-key fixed-window rate limiting backed by Redis.

Each validated site key gets one counter per window. The first request
creates the counter with the window expiry; every request increments it.
Both steps run in a single MULTI/EXEC so concurrent workers agree on the
count. A rejected request is answered immediately, never queued.

If Redis is unreachable the limiter lets the request through and logs a
warning.
"""

import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

KEY_PREFIX = "synditracker:ratelimit"


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one limiter check."""

    allowed: bool
    count: int
    retry_after: int = 0


class RateLimiter:
    """Fixed-window counter keyed by site key id.

    Args:
        redis_client: ``redis.asyncio`` client.
        max_requests: Requests allowed per window.
        window_seconds: Window length.
    """

    def __init__(
        self,
        redis_client: Any,
        max_requests: int = 60,
        window_seconds: int = 60,
    ) -> None:
        self._redis = redis_client
        self._max = max_requests
        self._window = window_seconds

    @property
    def max_requests(self) -> int:
        return self._max

    @property
    def window_seconds(self) -> int:
        return self._window

    def _key(self, key_id: int) -> str:
        return f"{KEY_PREFIX}:{key_id}"

    async def check(self, key_id: int) -> RateLimitDecision:
        key = self._key(key_id)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.set(key, 0, ex=self._window, nx=True)
                pipe.incr(key)
                pipe.ttl(key)
                _, count, ttl = await pipe.execute()
        except Exception as e:
            logger.warning("Rate limiter unavailable, allowing request: %s", e)
            return RateLimitDecision(allowed=True, count=0)

        count = int(count)
        if count > self._max:
            retry_after = int(ttl) if ttl and int(ttl) > 0 else self._window
            return RateLimitDecision(allowed=False, count=count, retry_after=retry_after)
        return RateLimitDecision(allowed=True, count=count)

    async def reset(self, key_id: int) -> None:
        await self._redis.delete(self._key(key_id))
