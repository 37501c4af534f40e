"""NameResolver component: private hosted zone scoped to the isolation boundary."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from privgate.domain.models.domain_record import DomainRecord
from privgate.domain.models.network import IsolationBoundary
from privgate.domain.models.system_error import NameResolutionError
from privgate.infrastructure.utils.validation import ValidationError, validate_domain_name

AliasProvider = Callable[[], str | None]


class NameResolver:
    """Resolves names of a private hosted zone for in-boundary resolvers.

    Records either hold static addresses or alias a named component whose
    address is read on every (uncached) resolution. TTL 0 disables caching so
    a replaced router is picked up by the very next connection; TTL > 0
    caches the answer per name until it expires.

    Example:
        ```python
        resolver = NameResolver(boundary, zone_name="internal.example.com")
        resolver.register_alias("internal-router", lambda: router.address)
        resolver.add_record(
            DomainRecord(name="stock.internal.example.com", alias="internal-router")
        )
        resolver.resolve("stock.internal.example.com", resolver_address="10.0.1.5")
        ```
    """

    def __init__(
        self,
        boundary: IsolationBoundary,
        zone_name: str,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize NameResolver.

        Args:
            boundary: Only resolvers inside this boundary get answers.
            zone_name: Apex of the private hosted zone.
            clock: Returns the current time; defaults to UTC wall clock.
        """
        try:
            self._zone_name = validate_domain_name(zone_name)
        except ValidationError as e:
            raise ValueError(str(e)) from e
        self._boundary = boundary
        self._clock = clock or (lambda: datetime.now(UTC))
        self._records: dict[str, DomainRecord] = {}
        self._aliases: dict[str, AliasProvider] = {}
        self._cache: dict[str, tuple[str, datetime]] = {}

    @property
    def zone_name(self) -> str:
        return self._zone_name

    @property
    def records(self) -> list[DomainRecord]:
        return [self._records[name] for name in sorted(self._records)]

    def register_alias(self, alias: str, provider: AliasProvider) -> None:
        """Make a component's address available to alias records."""
        self._aliases[alias] = provider

    def add_record(self, record: DomainRecord) -> None:
        """Add or replace a record in the zone.

        Raises:
            ValueError: If the name is outside the zone or is not a valid hostname.
        """
        try:
            name = validate_domain_name(record.name)
        except ValidationError as e:
            raise ValueError(str(e)) from e
        if name != self._zone_name and not name.endswith(f".{self._zone_name}"):
            raise ValueError(f"{name} is not part of zone {self._zone_name}")
        self._records[name] = record
        self._cache.pop(name, None)

    def remove_record(self, name: str) -> None:
        normalized = name.strip().rstrip(".").lower()
        self._records.pop(normalized, None)
        self._cache.pop(normalized, None)

    def resolve(self, domain_name: str, resolver_address: str | None) -> str:
        """Resolve a name to an address.

        Args:
            domain_name: Name to resolve.
            resolver_address: Address of the client asking; must be in the boundary.

        Returns:
            The router address (alias records) or the record's first value.

        Raises:
            NameResolutionError: If the resolver is outside the boundary, the
                name is unknown, or the aliased component has no address.
        """
        name = domain_name.strip().rstrip(".").lower()
        if not self._boundary.contains(resolver_address):
            # Outside the boundary the private zone does not exist
            raise NameResolutionError(
                f"Name {name} does not resolve from outside the isolation boundary",
                details={"resolver": resolver_address, "boundary": self._boundary.name},
            )

        now = self._clock()
        cached = self._cache.get(name)
        if cached is not None:
            address, expires_at = cached
            if now < expires_at:
                return address
            del self._cache[name]

        record = self._records.get(name)
        if record is None:
            raise NameResolutionError(f"Unknown name: {name}", details={"zone": self._zone_name})

        if record.alias is not None:
            provider = self._aliases.get(record.alias)
            address = provider() if provider is not None else None
            if not address:
                raise NameResolutionError(
                    f"Alias target {record.alias} for {name} has no address",
                    details={"alias": record.alias},
                )
        else:
            address = record.values[0]

        if record.ttl_seconds > 0:
            self._cache[name] = (address, now + timedelta(seconds=record.ttl_seconds))
        return address
