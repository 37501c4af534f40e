"""Usage store implementations (token buckets and quota counters)."""

from privgate.infrastructure.usage_store.memory_store import InMemoryUsageStore
from privgate.infrastructure.usage_store.redis_store import RedisUsageStore

__all__ = ["InMemoryUsageStore", "RedisUsageStore"]
