"""UsagePlan data model with throttle and quota settings."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class QuotaPeriod(str, Enum):
    """Fixed windows a period quota resets on (UTC)."""

    Day = "DAY"
    """Resets every day at 00:00 UTC."""

    Week = "WEEK"
    """Resets every Monday at 00:00 UTC."""

    Month = "MONTH"
    """Resets on the first day of every month at 00:00 UTC."""

    def window_start(self, current_time: datetime) -> datetime:
        """Start of the window containing current_time.

        Args:
            current_time: Timezone-aware datetime.

        Returns:
            The fixed boundary the current window started on.
        """
        midnight = current_time.replace(hour=0, minute=0, second=0, microsecond=0)
        if self == QuotaPeriod.Day:
            return midnight
        if self == QuotaPeriod.Week:
            return midnight - timedelta(days=midnight.weekday())
        if self == QuotaPeriod.Month:
            return midnight.replace(day=1)
        raise ValueError(f"Unknown quota period: {self}")

    def next_reset(self, current_time: datetime) -> datetime:
        """Calculate when the window containing current_time ends."""
        start = self.window_start(current_time)
        if self == QuotaPeriod.Day:
            return start + timedelta(days=1)
        if self == QuotaPeriod.Week:
            return start + timedelta(days=7)
        if start.month == 12:
            return start.replace(year=start.year + 1, month=1)
        return start.replace(month=start.month + 1)


class ThrottleSettings(BaseModel):
    """Token bucket parameters: steady refill rate and bucket capacity."""

    rate_limit: float = Field(..., gt=0, description="Sustained requests per second")
    burst_limit: int = Field(..., ge=1, description="Token bucket capacity")

    model_config = ConfigDict(frozen=True)


class QuotaSettings(BaseModel):
    """Maximum number of requests per fixed period."""

    limit: int = Field(..., ge=1)
    period: QuotaPeriod = Field(default=QuotaPeriod.Day)

    model_config = ConfigDict(frozen=True)


def route_key(method: str, path: str) -> str:
    """Canonical key for per-method throttle overrides, e.g. ``GET /stock``."""
    return f"{method.upper()} /{path.strip('/')}"


class UsagePlan(BaseModel):
    """Named bundle of rate/burst/quota limits bindable to many identities.

    Example:
        ```python
        plan = UsagePlan(
            id="orders-usage-plan",
            name="orders-usage-plan",
            throttle=ThrottleSettings(rate_limit=10, burst_limit=2),
            quota=QuotaSettings(limit=500, period=QuotaPeriod.Day),
            method_throttles={"GET /stock": ThrottleSettings(rate_limit=10, burst_limit=2)},
        )
        ```
    """

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: str = Field(default="")
    stage: str = Field(default="prod", min_length=1)
    throttle: ThrottleSettings | None = Field(default=None)
    quota: QuotaSettings | None = Field(default=None)
    method_throttles: dict[str, ThrottleSettings] = Field(
        default_factory=dict,
        description="Overrides keyed by 'METHOD /path'; replace the plan throttle for that route",
    )

    model_config = ConfigDict(
        frozen=False,
        validate_assignment=True,
        str_strip_whitespace=True,
    )

    @field_validator("method_throttles")
    @classmethod
    def normalize_route_keys(
        cls, v: dict[str, ThrottleSettings]
    ) -> dict[str, ThrottleSettings]:
        """Normalize override keys so lookups are insensitive to method case and slashes."""
        normalized: dict[str, ThrottleSettings] = {}
        for key, settings in v.items():
            method, _, path = key.strip().partition(" ")
            if not method or not path:
                raise ValueError(f"Route override key must look like 'GET /path', got {key!r}")
            normalized[route_key(method, path)] = settings
        return normalized

    def throttle_for(self, route: str | None) -> ThrottleSettings | None:
        """Effective throttle for a route: the override if any, else the plan's."""
        if route is not None:
            method, _, path = route.partition(" ")
            override = self.method_throttles.get(route_key(method, path))
            if override is not None:
                return override
        return self.throttle
