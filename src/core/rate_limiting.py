import asyncio
import time
from typing import Callable, Protocol

import redis.asyncio as redis

from src.api.core.models.rate_limit import (
    ClientIdentifier,
    ClientQuotaRecord,
    RateLimitResult,
)
from src.utils.logger import get_logger

logger = get_logger(__name__)


class QuotaStore(Protocol):
    """Backend holding one ClientQuotaRecord per client key."""

    async def consume(
        self, key: str, limit: int, window_seconds: int, now: float
    ) -> tuple[bool, int, float]:
        """Atomically check and consume one request slot.

        Returns (allowed, count after the call, window reset time).
        """
        ...


class InMemoryQuotaStore:
    """Process-local quota store guarded by a lock.

    Counts are lost on restart and are not shared between instances.
    """

    def __init__(self) -> None:
        self._records: dict[str, ClientQuotaRecord] = {}
        self._lock = asyncio.Lock()
        self._next_sweep_at: float | None = None

    async def consume(
        self, key: str, limit: int, window_seconds: int, now: float
    ) -> tuple[bool, int, float]:
        async with self._lock:
            self._sweep_expired(now, window_seconds)
            record = self._records.get(key)

            if record is None or now > record.window_reset_at:
                record = ClientQuotaRecord(
                    client_key=key, count=1, window_reset_at=now + window_seconds
                )
                self._records[key] = record
                return True, record.count, record.window_reset_at

            if record.count >= limit:
                return False, record.count, record.window_reset_at

            record.count += 1
            return True, record.count, record.window_reset_at

    def _sweep_expired(self, now: float, window_seconds: int) -> None:
        """Drop records whose window has ended, at most once per window."""
        if self._next_sweep_at is not None and now < self._next_sweep_at:
            return
        expired = [
            key
            for key, record in self._records.items()
            if now > record.window_reset_at
        ]
        for key in expired:
            del self._records[key]
        self._next_sweep_at = now + window_seconds

    def get(self, key: str) -> ClientQuotaRecord | None:
        return self._records.get(key)

    def clear(self) -> None:
        self._records.clear()


# KEYS[1] = quota key; ARGV = now, window_seconds, limit
# Returns {allowed, count, reset_at}; reset_at as string to keep the fraction.
_CONSUME_SCRIPT = """
local count = tonumber(redis.call('HGET', KEYS[1], 'count') or '0')
local reset_at = tonumber(redis.call('HGET', KEYS[1], 'reset_at') or '0')
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])

if count == 0 or now > reset_at then
    reset_at = now + window
    redis.call('HSET', KEYS[1], 'count', 1, 'reset_at', tostring(reset_at))
    redis.call('EXPIRE', KEYS[1], math.ceil(window) + 1)
    return {1, 1, tostring(reset_at)}
end

if count >= limit then
    return {0, count, tostring(reset_at)}
end

count = redis.call('HINCRBY', KEYS[1], 'count', 1)
return {1, count, tostring(reset_at)}
"""


class RedisQuotaStore:
    """Quota store shared across instances, one Lua script per check."""

    def __init__(self, redis_client: redis.Redis, key_prefix: str = ""):
        self.redis_client = redis_client
        self.key_prefix = key_prefix
        self._script = redis_client.register_script(_CONSUME_SCRIPT)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}" if self.key_prefix else key

    async def consume(
        self, key: str, limit: int, window_seconds: int, now: float
    ) -> tuple[bool, int, float]:
        allowed, count, reset_at = await self._script(
            keys=[self._key(key)], args=[now, window_seconds, limit]
        )
        if isinstance(reset_at, bytes):
            reset_at = reset_at.decode()
        return bool(int(allowed)), int(count), float(reset_at)


class RateLimiter:
    """Fixed-window rate limiter over a pluggable quota store."""

    def __init__(
        self,
        store: QuotaStore,
        limit: int,
        window_seconds: int,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.limit = limit
        self.window_seconds = window_seconds
        self.enabled = enabled
        self.clock = clock

    async def check_and_consume(
        self, client_identifier: ClientIdentifier
    ) -> RateLimitResult:
        """
        Check if request is allowed within rate limit and count it.

        Args:
            client_identifier: Typed client identifier for rate limiting

        Returns:
            RateLimitResult: Typed result with rate limit information
        """
        now = self.clock()
        try:
            allowed, count, reset_at = await self.store.consume(
                client_identifier.to_cache_key(),
                self.limit,
                self.window_seconds,
                now,
            )
        except redis.RedisError as e:
            logger.error(f"Rate limiter error for client {client_identifier}: {e}")
            # Fail open - allow request if Redis is down
            return RateLimitResult(
                is_allowed=True,
                remaining=self.limit,
                current_count=0,
                reset_at=now + self.window_seconds,
                limit=self.limit,
                window_seconds=self.window_seconds,
            )

        return RateLimitResult(
            is_allowed=allowed,
            remaining=max(0, self.limit - count) if allowed else 0,
            current_count=count,
            reset_at=reset_at,
            limit=self.limit,
            window_seconds=self.window_seconds,
        )
