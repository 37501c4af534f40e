"""Domain interfaces (abstract base classes)."""

from privgate.domain.interfaces.address_source import AddressSource
from privgate.domain.interfaces.health_prober import HealthProber, ProbeResult
from privgate.domain.interfaces.observability_manager import (
    ObservabilityError,
    ObservabilityManager,
)
from privgate.domain.interfaces.usage_store import (
    QuotaDecision,
    TokenBucketDecision,
    UsageStore,
    UsageStoreError,
)

__all__ = [
    "AddressSource",
    "HealthProber",
    "ProbeResult",
    "ObservabilityManager",
    "ObservabilityError",
    "UsageStore",
    "UsageStoreError",
    "TokenBucketDecision",
    "QuotaDecision",
]
