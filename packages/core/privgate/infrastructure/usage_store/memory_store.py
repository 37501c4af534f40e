"""In-memory usage store implementation.

Keeps token buckets and quota counters in dictionaries. Suitable for a single
gate instance; replicated gates need the Redis store (or limits divided by the
replica count).

Example:
    ```python
    store = InMemoryUsageStore()
    decision = await store.consume_token(
        "bucket:key-1", ThrottleSettings(rate_limit=10, burst_limit=2), now=time.time()
    )
    ```
"""

import asyncio
from collections import defaultdict
from datetime import datetime

from privgate.domain.interfaces.usage_store import (
    QuotaDecision,
    TokenBucketDecision,
    UsageStore,
)
from privgate.domain.models.usage_plan import ThrottleSettings


class _Bucket:
    __slots__ = ("tokens", "updated_at")

    def __init__(self, tokens: float, updated_at: float) -> None:
        self.tokens = tokens
        self.updated_at = updated_at


class InMemoryUsageStore(UsageStore):
    """In-memory implementation of UsageStore.

    Concurrency:
        - One asyncio.Lock per bucket/counter key, so contention only happens
          between requests of the same identity and route
        - Refill, check and decrement happen under that lock

    Attributes:
        _buckets: Token buckets keyed by bucket key
        _counters: Quota counters keyed by counter key, with their expiry
        _locks: Per-key locks
    """

    def __init__(self) -> None:
        self._buckets: dict[str, _Bucket] = {}
        self._counters: dict[str, tuple[int, datetime]] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def consume_token(
        self, bucket_key: str, throttle: ThrottleSettings, now: float
    ) -> TokenBucketDecision:
        """Refill the bucket up to now and take one token if available."""
        async with self._locks[bucket_key]:
            capacity = float(throttle.burst_limit)
            bucket = self._buckets.get(bucket_key)
            if bucket is None:
                bucket = _Bucket(tokens=capacity, updated_at=now)
                self._buckets[bucket_key] = bucket
            else:
                # Clock going backwards never adds tokens
                elapsed = max(0.0, now - bucket.updated_at)
                bucket.tokens = min(capacity, bucket.tokens + elapsed * throttle.rate_limit)
                bucket.updated_at = max(bucket.updated_at, now)

            if bucket.tokens >= 1.0:
                bucket.tokens -= 1.0
                return TokenBucketDecision(allowed=True, tokens_remaining=bucket.tokens)

            retry_after = (1.0 - bucket.tokens) / throttle.rate_limit
            return TokenBucketDecision(
                allowed=False,
                tokens_remaining=bucket.tokens,
                retry_after_seconds=retry_after,
            )

    async def increment_quota(
        self, counter_key: str, limit: int, resets_at: datetime, now: datetime
    ) -> QuotaDecision:
        """Count one request in a fixed quota window."""
        self._evict_expired(now)
        async with self._locks[counter_key]:
            count, _ = self._counters.get(counter_key, (0, resets_at))
            count += 1
            self._counters[counter_key] = (count, resets_at)
            return QuotaDecision(
                allowed=count <= limit,
                used=count,
                limit=limit,
                resets_at=resets_at,
            )

    async def get_quota_usage(self, counter_key: str) -> int:
        """Return the current count for a quota window (0 if unknown)."""
        entry = self._counters.get(counter_key)
        return entry[0] if entry else 0

    def _evict_expired(self, now: datetime) -> None:
        """Drop counters whose window has ended."""
        expired = [key for key, (_, resets_at) in self._counters.items() if resets_at <= now]
        for key in expired:
            self._counters.pop(key, None)
            self._locks.pop(key, None)
