"""Domain components."""

from privgate.domain.components.access_policy_engine import AccessPolicyEngine
from privgate.domain.components.health_checker import HealthChecker
from privgate.domain.components.internal_router import InternalRouter, TargetEvent
from privgate.domain.components.key_manager import (
    IdentityNotFoundError,
    IdentityRegistrationError,
    KeyManager,
    UsagePlanNotFoundError,
)
from privgate.domain.components.name_resolver import NameResolver
from privgate.domain.components.quota_gate import QuotaGate
from privgate.domain.components.target_synchronizer import TargetSynchronizer

__all__ = [
    "AccessPolicyEngine",
    "HealthChecker",
    "InternalRouter",
    "TargetEvent",
    "KeyManager",
    "IdentityNotFoundError",
    "IdentityRegistrationError",
    "UsagePlanNotFoundError",
    "NameResolver",
    "QuotaGate",
    "TargetSynchronizer",
]
