"""Address source backed by configuration or set programmatically."""

from privgate.domain.interfaces.address_source import AddressSource
from privgate.domain.models.system_error import AddressSourceError


class StaticAddressSource(AddressSource):
    """Returns addresses held in memory.

    Seeded from configuration at startup; operators (or tests) replace the
    set with ``set_addresses`` to simulate the endpoint's interfaces moving.
    """

    def __init__(self, addresses: dict[str, set[str]] | None = None) -> None:
        self._addresses: dict[str, set[str]] = {
            endpoint_id: set(values) for endpoint_id, values in (addresses or {}).items()
        }

    def set_addresses(self, endpoint_id: str, addresses: set[str]) -> None:
        self._addresses[endpoint_id] = set(addresses)

    async def fetch_addresses(self, endpoint_id: str) -> set[str]:
        if endpoint_id not in self._addresses:
            raise AddressSourceError(f"No addresses known for endpoint {endpoint_id}")
        return set(self._addresses[endpoint_id])
