"""Pytest configuration and shared fixtures."""

from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from dotenv import load_dotenv

from privgate.domain.interfaces.health_prober import HealthProber, ProbeResult
from privgate.domain.interfaces.observability_manager import ObservabilityManager
from privgate.domain.models.network import Endpoint, IngressRule, IsolationBoundary
from privgate.domain.models.target import HealthCheckSettings, Target
from privgate.domain.models.usage_plan import (
    QuotaPeriod,
    QuotaSettings,
    ThrottleSettings,
    UsagePlan,
)

# Load .env from the project root (REDIS_URL for the Redis store tests)
project_root = Path(__file__).parent.parent.parent.parent
env_path = project_root / ".env"
if env_path.exists():
    load_dotenv(env_path)


class RecordingObservabilityManager(ObservabilityManager):
    """ObservabilityManager that keeps everything in memory for assertions."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []
        self.logs: list[tuple[str, str, dict[str, Any]]] = []

    async def emit_event(
        self,
        event_type: str,
        payload: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.events.append((event_type, payload))

    async def log(
        self,
        level: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.logs.append((level, message, context or {}))

    def event_types(self) -> list[str]:
        return [event_type for event_type, _ in self.events]


class FrozenClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class ScriptedProber(HealthProber):
    """Returns a fixed status code per target address."""

    def __init__(self, default_status: int | None = 403) -> None:
        self.default_status = default_status
        self.status_by_address: dict[str, int | None] = {}
        self.calls: list[str] = []

    async def probe(self, target: Target, settings: HealthCheckSettings) -> ProbeResult:
        self.calls.append(target.address)
        status = self.status_by_address.get(target.address, self.default_status)
        if status is None:
            return ProbeResult(error="connection refused")
        return ProbeResult(status_code=status, latency_ms=1)


@pytest.fixture
def observability() -> RecordingObservabilityManager:
    return RecordingObservabilityManager()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 3, 14, 12, 0, 0, tzinfo=UTC))


@pytest.fixture
def prober() -> ScriptedProber:
    return ScriptedProber()


@pytest.fixture
def boundary() -> IsolationBoundary:
    return IsolationBoundary(
        name="stock-vpc",
        cidr="10.2.0.0/16",
        ingress_rules=[IngressRule(source_cidr="10.2.0.0/16", port=443)],
    )


@pytest.fixture
def endpoint() -> Endpoint:
    return Endpoint(
        id="vpce-stock-api",
        addresses={"10.2.0.10", "10.2.1.10"},
        boundary_name="stock-vpc",
        allowed_sources=["stock-internal-elb"],
    )


@pytest.fixture
def orders_plan() -> UsagePlan:
    throttle = ThrottleSettings(rate_limit=10, burst_limit=2)
    return UsagePlan(
        id="orders-usage-plan",
        name="orders-usage-plan",
        throttle=throttle,
        quota=QuotaSettings(limit=500, period=QuotaPeriod.Day),
        method_throttles={"GET /stock": throttle},
    )
