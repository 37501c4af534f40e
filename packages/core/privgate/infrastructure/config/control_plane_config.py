"""Structured control-plane configuration, built once at startup."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from privgate.domain.models.access_policy import AccessPolicy
from privgate.domain.models.domain_record import DomainRecord
from privgate.domain.models.network import Endpoint, IngressRule, IsolationBoundary
from privgate.domain.models.target import HealthCheckSettings
from privgate.domain.models.usage_plan import (
    QuotaPeriod,
    QuotaSettings,
    ThrottleSettings,
    UsagePlan,
)
from privgate.infrastructure.config.settings import (
    DEFAULT_ORDERS_API_KEY,
    DEFAULT_STOCK_DOMAIN,
)

DEFAULT_CIDR = "10.2.0.0/16"
DEFAULT_ROUTER_NAME = "stock-internal-elb"


def _default_boundary() -> IsolationBoundary:
    return IsolationBoundary(
        name="stock-vpc",
        cidr=DEFAULT_CIDR,
        ingress_rules=[
            IngressRule(source_cidr=DEFAULT_CIDR, port=443, description="https from the vpc")
        ],
    )


def _default_endpoint() -> Endpoint:
    return Endpoint(
        id="vpce-stock-api",
        addresses={"10.2.0.10", "10.2.1.10"},
        boundary_name="stock-vpc",
        allowed_sources=[DEFAULT_ROUTER_NAME],
    )


def _default_plans() -> list[UsagePlan]:
    throttle = ThrottleSettings(rate_limit=10, burst_limit=2)
    return [
        UsagePlan(
            id="orders-usage-plan",
            name="orders-usage-plan",
            stage="prod",
            throttle=throttle,
            quota=QuotaSettings(limit=500, period=QuotaPeriod.Day),
            method_throttles={"GET /stock": throttle},
        )
    ]


class IdentityConfig(BaseModel):
    """An identity to create at startup."""

    id: str | None = Field(default=None)
    name: str = Field(..., min_length=1)
    value: str | None = Field(default=None, description="Generated when omitted")
    customer_id: str | None = Field(default=None)
    description: str = Field(default="")
    enabled: bool = Field(default=True)
    usage_plan_id: str | None = Field(default=None)

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


def _default_identities() -> list[IdentityConfig]:
    return [
        IdentityConfig(
            id="orders-rate-limited-api-key",
            name="orders-rate-limited-api-key",
            value=DEFAULT_ORDERS_API_KEY,
            customer_id="orders-api",
            description="orders-rate-limited-api-key",
            usage_plan_id="orders-usage-plan",
        )
    ]


class RouterConfig(BaseModel):
    """Internal router listener and target group."""

    name: str = Field(default=DEFAULT_ROUTER_NAME)
    address: str | None = Field(
        default="10.2.0.100",
        description="Address published through the DNS alias record",
    )
    listen_host: str = Field(default="0.0.0.0")
    listen_port: int = Field(default=443, ge=0, le=65535)
    target_port: int = Field(default=443, ge=1, le=65535)
    backlog: int = Field(default=100, ge=1)
    drain_timeout_seconds: float = Field(default=300.0, ge=0)
    certificate_file: str | None = Field(default=None)
    key_file: str | None = Field(default=None)
    upstream_tls: bool = Field(default=True, description="Re-encrypt to targets (HTTPS target group)")
    enable_listener: bool = Field(default=False, description="Start the TCP/TLS forwarder")

    model_config = ConfigDict(frozen=True)


class SyncConfig(BaseModel):
    """Where endpoint addresses come from and how often they are re-read."""

    source: Literal["static", "dns"] = Field(default="static")
    endpoint_dns_name: str | None = Field(default=None)
    interval_seconds: float = Field(default=60.0, gt=0)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_source(self) -> "SyncConfig":
        if self.source == "dns" and not self.endpoint_dns_name:
            raise ValueError("endpoint_dns_name is required when source is 'dns'")
        return self


class DnsConfig(BaseModel):
    """Private hosted zone."""

    zone_name: str = Field(default=DEFAULT_STOCK_DOMAIN)
    records: list[DomainRecord] | None = Field(
        default=None,
        description="Defaults to one A alias record for the zone apex pointing at the router",
    )

    model_config = ConfigDict(frozen=True)


class ControlPlaneConfig(BaseModel):
    """Everything the control plane needs, passed explicitly into components.

    The defaults reproduce the original two-stack deployment: a 10.2.0.0/16
    boundary with TCP/443 ingress from itself, one execute-api entry point,
    the ``orders-usage-plan`` (10 rps, burst 2, 500/day) with the same
    override on ``GET /stock``, the ``orders-rate-limited-api-key`` identity,
    a 403-expecting health check and a TTL 0 alias record.
    """

    stage: str = Field(default="prod")
    boundary: IsolationBoundary = Field(default_factory=_default_boundary)
    endpoint: Endpoint = Field(default_factory=_default_endpoint)
    policy: AccessPolicy | None = Field(
        default=None,
        description="Defaults to private_endpoint_only(endpoint.id)",
    )
    usage_plans: list[UsagePlan] = Field(default_factory=_default_plans)
    identities: list[IdentityConfig] = Field(default_factory=_default_identities)
    router: RouterConfig = Field(default_factory=RouterConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    health_check: HealthCheckSettings = Field(default_factory=HealthCheckSettings)
    dns: DnsConfig = Field(default_factory=DnsConfig)

    model_config = ConfigDict(validate_assignment=True)

    @model_validator(mode="after")
    def validate_references(self) -> "ControlPlaneConfig":
        """Cross-check names between sections."""
        if self.endpoint.boundary_name != self.boundary.name:
            raise ValueError(
                f"Endpoint boundary {self.endpoint.boundary_name!r} does not match "
                f"boundary {self.boundary.name!r}"
            )
        outside = sorted(a for a in self.endpoint.addresses if not self.boundary.contains(a))
        if outside:
            raise ValueError(f"Endpoint addresses outside the boundary: {', '.join(outside)}")
        if self.router.address and not self.boundary.contains(self.router.address):
            raise ValueError("Router address must be inside the boundary")
        if not self.endpoint.accepts(self.router.target_port):
            raise ValueError(
                f"Endpoint does not listen on router target port {self.router.target_port}"
            )
        if not self.endpoint.accepts_source(self.router.name):
            raise ValueError(f"Endpoint ingress does not admit router {self.router.name!r}")

        plan_ids = {plan.id for plan in self.usage_plans}
        if len(plan_ids) != len(self.usage_plans):
            raise ValueError("Usage plan ids must be unique")
        for identity in self.identities:
            if identity.usage_plan_id and identity.usage_plan_id not in plan_ids:
                raise ValueError(
                    f"Identity {identity.name!r} references unknown usage plan "
                    f"{identity.usage_plan_id!r}"
                )
        return self

    def effective_policy(self) -> AccessPolicy:
        return self.policy or AccessPolicy.private_endpoint_only(self.endpoint.id)

    def effective_records(self) -> list[DomainRecord]:
        if self.dns.records is not None:
            return list(self.dns.records)
        return [
            DomainRecord(
                name=self.dns.zone_name,
                alias=self.router.name,
                ttl_seconds=0,
                comment="stock internal api",
            )
        ]
