"""UsageStore interface for rate-limiter and quota counter state.

The token buckets and quota counters are the only shared mutable state on the
request path. A UsageStore exposes them as atomic check-and-update primitives
so concurrent requests for the same identity cannot both take the last token.

Example:
    ```python
    from privgate.infrastructure.usage_store.memory_store import InMemoryUsageStore

    store: UsageStore = InMemoryUsageStore()
    decision = await store.consume_token(
        "bucket:key-1:GET /stock",
        ThrottleSettings(rate_limit=10, burst_limit=2),
        now=time.time(),
    )
    if not decision.allowed:
        ...
    ```
"""

from abc import ABC, abstractmethod
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from privgate.domain.models.usage_plan import ThrottleSettings


class TokenBucketDecision(BaseModel):
    """Result of trying to take one token from a bucket."""

    allowed: bool
    tokens_remaining: float = Field(default=0.0, ge=0)
    retry_after_seconds: float = Field(
        default=0.0,
        ge=0,
        description="Time until one token is available (0 when allowed)",
    )

    model_config = ConfigDict(frozen=True)


class QuotaDecision(BaseModel):
    """Result of counting one request against a period quota."""

    allowed: bool
    used: int = Field(..., ge=0)
    limit: int = Field(..., ge=1)
    resets_at: datetime

    model_config = ConfigDict(frozen=True)

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)


class UsageStore(ABC):
    """Abstract interface for token bucket and quota counter storage."""

    @abstractmethod
    async def consume_token(
        self, bucket_key: str, throttle: ThrottleSettings, now: float
    ) -> TokenBucketDecision:
        """Refill the bucket up to now and take one token if available.

        The refill-check-decrement sequence must be atomic per bucket_key.

        Args:
            bucket_key: Bucket identifier (identity + route).
            throttle: Capacity (burst) and refill rate (per second).
            now: Current time as a POSIX timestamp.

        Returns:
            TokenBucketDecision describing whether a token was taken.

        Raises:
            UsageStoreError: If the store cannot be reached and has no fallback.
        """
        pass

    @abstractmethod
    async def increment_quota(
        self, counter_key: str, limit: int, resets_at: datetime, now: datetime
    ) -> QuotaDecision:
        """Count one request in a fixed quota window.

        The counter expires at resets_at, measured against now. Once the
        count exceeds limit every further request in the same window is
        rejected.

        Args:
            counter_key: Counter identifier (identity + window start).
            limit: Maximum number of requests in the window.
            resets_at: End of the window.
            now: Current time (same clock as resets_at).

        Returns:
            QuotaDecision with the updated count.

        Raises:
            UsageStoreError: If the store cannot be reached and has no fallback.
        """
        pass

    @abstractmethod
    async def get_quota_usage(self, counter_key: str) -> int:
        """Return the current count for a quota window (0 if unknown)."""
        pass

    async def close(self) -> None:
        """Release connections held by the store."""
        return None


class UsageStoreError(Exception):
    """Raised when usage store operations fail."""

    pass
