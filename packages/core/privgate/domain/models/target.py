"""Target data model and the health check state machine."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from privgate.domain.models.state_transition import StateTransition


class HealthStatus(str, Enum):
    """Health state of a router target."""

    Initial = "initial"
    """Registered, not yet confirmed by probes. Receives no traffic."""

    Healthy = "healthy"
    """Passed N consecutive probes. Eligible for traffic."""

    Unhealthy = "unhealthy"
    """Failed M consecutive probes. Receives no traffic."""


class HealthCheckSettings(BaseModel):
    """Probe configuration for a target group."""

    path: str = Field(default="/")
    protocol: str = Field(default="https")
    port: int | None = Field(default=None, description="Defaults to the target port")
    healthy_codes: set[int] = Field(default_factory=lambda: {403})
    healthy_threshold: int = Field(default=2, ge=1)
    unhealthy_threshold: int = Field(default=2, ge=1)
    interval_seconds: float = Field(default=30.0, gt=0)
    timeout_seconds: float = Field(default=5.0, gt=0)

    model_config = ConfigDict(frozen=True)

    @field_validator("healthy_codes", mode="before")
    @classmethod
    def parse_healthy_codes(cls, v: object) -> object:
        """Accept '403' or '200,403' strings as well as collections."""
        if isinstance(v, str):
            return {int(code) for code in v.split(",") if code.strip()}
        if isinstance(v, int):
            return {v}
        return v

    @field_validator("protocol")
    @classmethod
    def validate_protocol(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("http", "https"):
            raise ValueError("Health check protocol must be http or https")
        return v


class Target(BaseModel):
    """One routable address + port behind the internal router.

    Health state only changes through ``record_probe``; a single flaky probe
    never flips state because both directions require consecutive results.
    """

    address: str = Field(..., min_length=1)
    port: int = Field(default=443, ge=1, le=65535)
    health: HealthStatus = Field(default=HealthStatus.Initial)
    last_health_check: datetime | None = Field(default=None)
    consecutive_successes: int = Field(default=0, ge=0)
    consecutive_failures: int = Field(default=0, ge=0)
    registered_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    draining: bool = Field(default=False)
    draining_since: datetime | None = Field(default=None)
    active_connections: int = Field(default=0, ge=0)

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    @property
    def key(self) -> str:
        return f"{self.address}:{self.port}"

    @property
    def routable(self) -> bool:
        """Only healthy, non-draining targets receive new connections."""
        return self.health == HealthStatus.Healthy and not self.draining

    def record_probe(
        self,
        passed: bool,
        healthy_threshold: int = 2,
        unhealthy_threshold: int = 2,
        now: datetime | None = None,
        detail: str = "",
    ) -> StateTransition | None:
        """Feed one probe result into the state machine.

        Args:
            passed: Whether the probe returned a healthy response signature.
            healthy_threshold: Consecutive passes required to become HEALTHY.
            unhealthy_threshold: Consecutive failures required to become UNHEALTHY.
            now: Probe completion time.
            detail: Probe outcome description recorded on transitions.

        Returns:
            The StateTransition if the health state changed, else None.
        """
        self.last_health_check = now or datetime.now(UTC)
        previous = self.health

        if passed:
            self.consecutive_successes += 1
            self.consecutive_failures = 0
            if previous != HealthStatus.Healthy and self.consecutive_successes >= healthy_threshold:
                self.health = HealthStatus.Healthy
        else:
            self.consecutive_failures += 1
            self.consecutive_successes = 0
            if (
                previous != HealthStatus.Unhealthy
                and self.consecutive_failures >= unhealthy_threshold
            ):
                self.health = HealthStatus.Unhealthy

        if self.health == previous:
            return None
        return StateTransition(
            entity_type="Target",
            entity_id=self.key,
            from_state=previous.value,
            to_state=self.health.value,
            transition_timestamp=self.last_health_check,
            trigger="health_check",
            context={"detail": detail} if detail else {},
        )

    def reset(self) -> None:
        """Return to INITIAL, e.g. when re-registered after draining."""
        self.health = HealthStatus.Initial
        self.consecutive_successes = 0
        self.consecutive_failures = 0
        self.draining = False
        self.draining_since = None
