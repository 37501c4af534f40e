"""Address source that resolves the endpoint's DNS name."""

import asyncio
import socket

from privgate.domain.interfaces.address_source import AddressSource
from privgate.domain.models.system_error import AddressSourceError


class DnsAddressSource(AddressSource):
    """Resolves a per-endpoint hostname to the endpoint's current addresses.

    Private entry points publish a DNS name that returns one address per
    availability zone; resolving it is the cheapest way to follow interface
    changes without cloud API credentials.
    """

    def __init__(self, hostnames: dict[str, str], port: int = 443) -> None:
        """Initialize DnsAddressSource.

        Args:
            hostnames: Endpoint id -> DNS name of the endpoint.
            port: Port passed to getaddrinfo.
        """
        self._hostnames = dict(hostnames)
        self._port = port

    async def fetch_addresses(self, endpoint_id: str) -> set[str]:
        hostname = self._hostnames.get(endpoint_id)
        if hostname is None:
            raise AddressSourceError(f"No DNS name configured for endpoint {endpoint_id}")

        loop = asyncio.get_running_loop()
        try:
            infos = await loop.getaddrinfo(
                hostname, self._port, type=socket.SOCK_STREAM, proto=socket.IPPROTO_TCP
            )
        except OSError as e:
            raise AddressSourceError(f"Failed to resolve {hostname}: {e}") from e
        return {info[4][0] for info in infos}
