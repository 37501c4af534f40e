"""HealthProber interface for target health checks."""

from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict, Field

from privgate.domain.models.target import HealthCheckSettings, Target


class ProbeResult(BaseModel):
    """Outcome of one probe against a target."""

    status_code: int | None = Field(
        default=None,
        description="HTTP status returned, None if the target could not be reached",
    )
    latency_ms: int | None = Field(default=None, ge=0)
    error: str | None = Field(default=None)

    model_config = ConfigDict(frozen=True)

    def matches(self, settings: HealthCheckSettings) -> bool:
        """Healthy iff the status is one of the configured healthy codes."""
        return self.status_code is not None and self.status_code in settings.healthy_codes


class HealthProber(ABC):
    """Sends one unauthenticated probe to a target."""

    @abstractmethod
    async def probe(self, target: Target, settings: HealthCheckSettings) -> ProbeResult:
        """Probe a target once.

        Implementations must not raise for network failures or timeouts;
        those are reported as a ProbeResult without status code.

        Args:
            target: Target to probe.
            settings: Path, protocol, port and timeout to use.

        Returns:
            ProbeResult for the attempt.
        """
        pass
