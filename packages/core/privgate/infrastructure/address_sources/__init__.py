"""Address sources for the private entry point."""

from privgate.infrastructure.address_sources.dns_source import DnsAddressSource
from privgate.infrastructure.address_sources.static_source import StaticAddressSource

__all__ = ["DnsAddressSource", "StaticAddressSource"]
