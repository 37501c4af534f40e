"""Domain models for the private service-access control plane."""

from privgate.domain.models.access_policy import (
    AccessPolicy,
    AccessRequest,
    Decision,
    Effect,
    PolicyEvaluation,
    PolicyStatement,
    StringEquals,
    StringNotEquals,
)
from privgate.domain.models.authorization_result import (
    AuthorizationResult,
    RejectionReason,
)
from privgate.domain.models.domain_record import DomainRecord
from privgate.domain.models.identity import Identity
from privgate.domain.models.network import (
    Endpoint,
    IngressRule,
    IsolationBoundary,
    PortSpec,
    Protocol,
)
from privgate.domain.models.reconciliation import ReconciliationResult
from privgate.domain.models.state_transition import StateTransition
from privgate.domain.models.system_error import (
    AccessDeniedError,
    AddressSourceError,
    CertificateError,
    ErrorCategory,
    GatewayError,
    InvalidIdentityError,
    NameResolutionError,
    NoHealthyTargetsError,
    QuotaExceededError,
    ThrottledError,
)
from privgate.domain.models.target import HealthCheckSettings, HealthStatus, Target
from privgate.domain.models.usage_plan import (
    QuotaPeriod,
    QuotaSettings,
    ThrottleSettings,
    UsagePlan,
)

__all__ = [
    "AccessPolicy",
    "AccessRequest",
    "Decision",
    "Effect",
    "PolicyEvaluation",
    "PolicyStatement",
    "StringEquals",
    "StringNotEquals",
    "AuthorizationResult",
    "RejectionReason",
    "DomainRecord",
    "Identity",
    "Endpoint",
    "IngressRule",
    "IsolationBoundary",
    "PortSpec",
    "Protocol",
    "ReconciliationResult",
    "StateTransition",
    "ErrorCategory",
    "GatewayError",
    "AccessDeniedError",
    "AddressSourceError",
    "CertificateError",
    "InvalidIdentityError",
    "NameResolutionError",
    "NoHealthyTargetsError",
    "QuotaExceededError",
    "ThrottledError",
    "HealthCheckSettings",
    "HealthStatus",
    "Target",
    "QuotaPeriod",
    "QuotaSettings",
    "ThrottleSettings",
    "UsagePlan",
]
