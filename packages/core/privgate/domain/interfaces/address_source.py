"""AddressSource interface: where the entry point's current addresses come from."""

from abc import ABC, abstractmethod


class AddressSource(ABC):
    """Reports the backing addresses of a private entry point.

    Implementations may query a cloud API, a service registry or a file;
    the reconciliation loop only relies on this one call.
    """

    @abstractmethod
    async def fetch_addresses(self, endpoint_id: str) -> set[str]:
        """Return the endpoint's current addresses.

        Args:
            endpoint_id: Id of the private entry point.

        Returns:
            Set of IP address strings.

        Raises:
            AddressSourceError: If the addresses cannot be determined.
        """
        pass
