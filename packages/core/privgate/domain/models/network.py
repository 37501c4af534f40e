"""Network isolation boundary and private entry point models."""

from __future__ import annotations

import ipaddress
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Protocol(str, Enum):
    """Transport protocols accepted by ingress rules."""

    TCP = "tcp"
    UDP = "udp"


class PortSpec(BaseModel):
    """A port/protocol pair an endpoint accepts."""

    port: int = Field(default=443, ge=1, le=65535)
    protocol: Protocol = Field(default=Protocol.TCP)

    model_config = ConfigDict(frozen=True)


class IngressRule(BaseModel):
    """Allows traffic from a source CIDR to a port."""

    source_cidr: str = Field(..., description="Source network in CIDR notation")
    port: int = Field(default=443, ge=1, le=65535)
    protocol: Protocol = Field(default=Protocol.TCP)
    description: str = Field(default="")

    model_config = ConfigDict(frozen=True)

    @field_validator("source_cidr")
    @classmethod
    def validate_source_cidr(cls, v: str) -> str:
        """Validate the source network."""
        return str(ipaddress.ip_network(v.strip(), strict=False))

    def matches(self, source: str, port: int, protocol: Protocol = Protocol.TCP) -> bool:
        """Check whether a connection attempt is covered by this rule."""
        if port != self.port or protocol != self.protocol:
            return False
        try:
            return ipaddress.ip_address(source) in ipaddress.ip_network(self.source_cidr)
        except ValueError:
            return False


class IsolationBoundary(BaseModel):
    """A private address space with no default route to the internet.

    Every component of the control plane lives inside one boundary. Addresses
    outside of it are never registered as targets and resolvers outside of it
    never see the private zone.

    Example:
        ```python
        boundary = IsolationBoundary(
            name="stock-vpc",
            cidr="10.0.0.0/16",
            ingress_rules=[IngressRule(source_cidr="10.0.0.0/16", port=443)],
        )
        boundary.contains("10.0.1.12")  # True
        ```
    """

    name: str = Field(..., min_length=1)
    cidr: str = Field(..., description="Address space in CIDR notation")
    has_internet_route: bool = Field(
        default=False,
        description="Whether a default route to the internet exists",
    )
    ingress_rules: list[IngressRule] = Field(default_factory=list)

    model_config = ConfigDict(validate_assignment=True)

    @field_validator("cidr")
    @classmethod
    def validate_cidr(cls, v: str) -> str:
        """Validate the address space."""
        network = ipaddress.ip_network(v.strip(), strict=False)
        if not network.is_private:
            raise ValueError(f"Isolation boundary must use a private range, got {network}")
        return str(network)

    @field_validator("has_internet_route")
    @classmethod
    def validate_no_internet_route(cls, v: bool) -> bool:
        """An isolation boundary cannot have a default internet route."""
        if v:
            raise ValueError("Isolation boundary must not have a default internet route")
        return v

    @property
    def network(self) -> ipaddress.IPv4Network | ipaddress.IPv6Network:
        return ipaddress.ip_network(self.cidr)

    def contains(self, address: str | None) -> bool:
        """Return True if address is a literal IP inside the boundary."""
        if not address:
            return False
        try:
            return ipaddress.ip_address(address) in self.network
        except ValueError:
            return False

    def allows_ingress(
        self, source: str, port: int, protocol: Protocol = Protocol.TCP
    ) -> bool:
        """Return True if any ingress rule admits the connection."""
        return any(rule.matches(source, port, protocol) for rule in self.ingress_rules)


class Endpoint(BaseModel):
    """The private entry point: the only sanctioned ingress to the internal API.

    The id is stable for the lifetime of the endpoint; the backing addresses
    are refreshed asynchronously and may change at any time.
    """

    id: str = Field(..., min_length=1, description="Stable endpoint identifier")
    addresses: set[str] = Field(
        default_factory=set,
        description="Current backend addresses (one per availability zone)",
    )
    ports: list[PortSpec] = Field(default_factory=lambda: [PortSpec()])
    boundary_name: str = Field(..., min_length=1)
    allowed_sources: list[str] = Field(
        default_factory=list,
        description="Component names allowed to open connections (e.g. the router)",
    )

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    @field_validator("addresses")
    @classmethod
    def validate_addresses(cls, v: set[str]) -> set[str]:
        """Normalize addresses to their canonical IP form."""
        return {str(ipaddress.ip_address(a.strip())) for a in v}

    @property
    def provisioned(self) -> bool:
        return bool(self.addresses)

    def accepts(self, port: int, protocol: Protocol = Protocol.TCP) -> bool:
        """Check whether the endpoint listens on a port/protocol."""
        return any(p.port == port and p.protocol == protocol for p in self.ports)

    def accepts_source(self, source_name: str) -> bool:
        """Check whether a component may connect to the endpoint."""
        return source_name in self.allowed_sources
