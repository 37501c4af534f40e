"""Redis-based usage store implementation.

Shares token buckets and quota counters between horizontally replicated gate
instances so limits apply to the whole fleet rather than per replica.

Example:
    ```python
    import os
    os.environ["REDIS_URL"] = "redis://localhost:6379/0"

    from privgate.infrastructure.usage_store.redis_store import RedisUsageStore

    store = RedisUsageStore()
    decision = await store.consume_token("bucket:key-1", throttle, now=time.time())
    ```
"""

import math
import os
from datetime import datetime

import structlog
from redis.asyncio import Redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from privgate.domain.interfaces.usage_store import (
    QuotaDecision,
    TokenBucketDecision,
    UsageStore,
    UsageStoreError,
)
from privgate.domain.models.usage_plan import ThrottleSettings
from privgate.infrastructure.usage_store.memory_store import InMemoryUsageStore

logger = structlog.get_logger(__name__)

# Redis key patterns
KEY_PATTERN_BUCKET = "privgate:bucket:{bucket_key}"
KEY_PATTERN_QUOTA = "privgate:quota:{counter_key}"

# Refill, check and decrement in one round trip. Numbers are returned as
# strings because Redis truncates Lua floats to integers.
TOKEN_BUCKET_SCRIPT = """
local capacity = tonumber(ARGV[1])
local rate = tonumber(ARGV[2])
local now = tonumber(ARGV[3])
local ttl = tonumber(ARGV[4])
local state = redis.call('HMGET', KEYS[1], 'tokens', 'ts')
local tokens = tonumber(state[1])
local ts = tonumber(state[2])
if tokens == nil or ts == nil then
    tokens = capacity
    ts = now
end
tokens = math.min(capacity, tokens + math.max(0, now - ts) * rate)
if now > ts then
    ts = now
end
local allowed = 0
if tokens >= 1 then
    tokens = tokens - 1
    allowed = 1
end
redis.call('HSET', KEYS[1], 'tokens', tostring(tokens), 'ts', tostring(ts))
redis.call('EXPIRE', KEYS[1], ttl)
return {allowed, tostring(tokens)}
"""


class RedisUsageStore(UsageStore):
    """Redis-based implementation of UsageStore.

    Atomicity:
        - Token buckets are updated by a Lua script (single atomic step)
        - Quota counters use INCR + EXPIRE in a transaction pipeline

    Failure handling:
        - If Redis is not configured or becomes unreachable, the store
          switches to an InMemoryUsageStore so the gate keeps admitting
          traffic with per-instance limits

    Attributes:
        _redis: Redis async client instance
        _connection_pool: Redis connection pool
        _fallback_store: InMemoryUsageStore used when Redis is unavailable
        _use_fallback: Flag indicating if fallback mode is active
    """

    def __init__(
        self,
        redis_url: str | None = None,
        connection_timeout: int = 5,
        max_connections: int = 10,
    ) -> None:
        """Initialize RedisUsageStore with connection configuration.

        Args:
            redis_url: Redis connection URL. If None, reads from REDIS_URL environment variable.
                     If not provided and REDIS_URL not set, will use fallback mode.
            connection_timeout: Connection timeout in seconds (default: 5).
            max_connections: Connection pool size (default: 10).
        """
        self._redis_url = redis_url or os.getenv("REDIS_URL")
        self._redis: Redis | None = None
        self._connection_pool: ConnectionPool | None = None
        self._use_fallback = False
        self._fallback_store = InMemoryUsageStore()
        self._bucket_script = None

        if self._redis_url:
            try:
                self._connection_pool = ConnectionPool.from_url(
                    self._redis_url,
                    max_connections=max_connections,
                    socket_connect_timeout=connection_timeout,
                    socket_timeout=connection_timeout,
                    retry_on_timeout=True,
                )
                self._redis = Redis(connection_pool=self._connection_pool)
                self._bucket_script = self._redis.register_script(TOKEN_BUCKET_SCRIPT)
            except Exception as e:
                logger.warning(
                    "Failed to initialize Redis connection, using fallback mode",
                    error=str(e),
                    redis_url=self._redis_url,
                )
                self._use_fallback = True
        else:
            logger.warning("REDIS_URL not provided, using fallback in-memory usage store")
            self._use_fallback = True

    @property
    def using_fallback(self) -> bool:
        return self._use_fallback

    def _switch_to_fallback(self, operation: str, error: Exception) -> None:
        if not self._use_fallback:
            logger.warning(
                "Redis usage store unavailable, switching to fallback mode",
                operation=operation,
                error=str(error),
            )
        self._use_fallback = True

    async def consume_token(
        self, bucket_key: str, throttle: ThrottleSettings, now: float
    ) -> TokenBucketDecision:
        """Refill the bucket up to now and take one token if available."""
        if self._use_fallback or self._bucket_script is None:
            return await self._fallback_store.consume_token(bucket_key, throttle, now)

        # Keep an idle bucket around long enough to refill completely
        ttl = math.ceil(throttle.burst_limit / throttle.rate_limit) + 1
        try:
            allowed, tokens = await self._bucket_script(
                keys=[KEY_PATTERN_BUCKET.format(bucket_key=bucket_key)],
                args=[throttle.burst_limit, throttle.rate_limit, now, ttl],
            )
        except (ConnectionError, TimeoutError) as e:
            self._switch_to_fallback("consume_token", e)
            return await self._fallback_store.consume_token(bucket_key, throttle, now)
        except RedisError as e:
            raise UsageStoreError(f"Failed to consume token for {bucket_key}: {e}") from e

        remaining = max(0.0, float(tokens))
        if int(allowed) == 1:
            return TokenBucketDecision(allowed=True, tokens_remaining=remaining)
        return TokenBucketDecision(
            allowed=False,
            tokens_remaining=remaining,
            retry_after_seconds=(1.0 - remaining) / throttle.rate_limit,
        )

    async def increment_quota(
        self, counter_key: str, limit: int, resets_at: datetime, now: datetime
    ) -> QuotaDecision:
        """Count one request in a fixed quota window."""
        if self._use_fallback or self._redis is None:
            return await self._fallback_store.increment_quota(counter_key, limit, resets_at, now)

        redis_key = KEY_PATTERN_QUOTA.format(counter_key=counter_key)
        ttl = max(1, math.ceil((resets_at - now).total_seconds()))
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.incr(redis_key)
                pipe.expire(redis_key, ttl)
                count, _ = await pipe.execute()
        except (ConnectionError, TimeoutError) as e:
            self._switch_to_fallback("increment_quota", e)
            return await self._fallback_store.increment_quota(counter_key, limit, resets_at, now)
        except RedisError as e:
            raise UsageStoreError(f"Failed to increment quota for {counter_key}: {e}") from e

        count = int(count)
        return QuotaDecision(allowed=count <= limit, used=count, limit=limit, resets_at=resets_at)

    async def get_quota_usage(self, counter_key: str) -> int:
        """Return the current count for a quota window (0 if unknown)."""
        if self._use_fallback or self._redis is None:
            return await self._fallback_store.get_quota_usage(counter_key)
        try:
            value = await self._redis.get(KEY_PATTERN_QUOTA.format(counter_key=counter_key))
        except (ConnectionError, TimeoutError) as e:
            self._switch_to_fallback("get_quota_usage", e)
            return await self._fallback_store.get_quota_usage(counter_key)
        return int(value) if value is not None else 0

    async def check_connection(self) -> bool:
        """Check if the Redis connection is healthy."""
        if self._use_fallback or self._redis is None:
            return False
        try:
            await self._redis.ping()
            return True
        except (ConnectionError, TimeoutError, RedisError):
            return False

    async def close(self) -> None:
        """Close Redis connection and cleanup resources."""
        if self._redis:
            await self._redis.aclose()
        if self._connection_pool:
            await self._connection_pool.disconnect()
