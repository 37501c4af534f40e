"""ControlPlane - orchestrator for the private service-access control plane."""

import asyncio
import ssl
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from privgate.domain.components.access_policy_engine import AccessPolicyEngine
from privgate.domain.components.health_checker import HealthChecker
from privgate.domain.components.internal_router import InternalRouter
from privgate.domain.components.key_manager import KeyManager
from privgate.domain.components.name_resolver import NameResolver
from privgate.domain.components.quota_gate import QuotaGate
from privgate.domain.components.target_synchronizer import TargetSynchronizer
from privgate.domain.interfaces.address_source import AddressSource
from privgate.domain.interfaces.health_prober import HealthProber
from privgate.domain.interfaces.observability_manager import ObservabilityManager
from privgate.domain.interfaces.usage_store import UsageStore
from privgate.domain.models.access_policy import AccessRequest
from privgate.domain.models.authorization_result import AuthorizationResult
from privgate.domain.models.system_error import AccessDeniedError, InvalidIdentityError
from privgate.domain.models.usage_plan import route_key
from privgate.infrastructure.address_sources.dns_source import DnsAddressSource
from privgate.infrastructure.address_sources.static_source import StaticAddressSource
from privgate.infrastructure.config.control_plane_config import ControlPlaneConfig
from privgate.infrastructure.config.file_loader import load_control_plane_config
from privgate.infrastructure.config.settings import ControlPlaneSettings
from privgate.infrastructure.network.certificates import create_server_ssl_context
from privgate.infrastructure.network.forwarder import ConnectionForwarder
from privgate.infrastructure.observability.logger import DefaultObservabilityManager
from privgate.infrastructure.probes.http_prober import HttpHealthProber
from privgate.infrastructure.usage_store.memory_store import InMemoryUsageStore
from privgate.infrastructure.usage_store.redis_store import RedisUsageStore
from privgate.infrastructure.utils.validation import ValidationError, validate_ip_address


class ControlPlane:
    """Main entry point: wires every control-plane component from configuration.

    Request path (stateless per request apart from usage counters):
    access policy (403) -> identity & quota gate (403/429) -> handler.

    Background path: target reconciliation and per-target health checks,
    started by ``start()`` and cleanly cancelled by ``stop()``.

    Example:
        ```python
        async with ControlPlane() as control_plane:
            result = await control_plane.admit(
                "GET", "/stock",
                api_key="super-secret-api-key",
                source_endpoint_id="vpce-stock-api",
            )
        ```
    """

    def __init__(
        self,
        config: ControlPlaneConfig | None = None,
        settings: ControlPlaneSettings | dict[str, Any] | None = None,
        observability_manager: ObservabilityManager | None = None,
        usage_store: UsageStore | None = None,
        address_source: AddressSource | None = None,
        prober: HealthProber | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize ControlPlane with dependencies.

        Args:
            config: Structured configuration. Loaded from settings.config_file
                (or built-in defaults) when omitted.
            settings: Process settings; loaded from the environment when omitted.
            observability_manager: Defaults to DefaultObservabilityManager.
            usage_store: Defaults to RedisUsageStore when settings.redis_url is
                set, InMemoryUsageStore otherwise.
            address_source: Defaults to the source named in config.sync.
            prober: Defaults to HttpHealthProber.
            clock: Returns the current time; defaults to UTC wall clock.

        Raises:
            ConfigurationError: If the configuration file is invalid.
            ValueError: If settings has an unsupported type.
        """
        if settings is None:
            self._settings = ControlPlaneSettings()
        elif isinstance(settings, dict):
            self._settings = ControlPlaneSettings.from_dict(settings)
        elif isinstance(settings, ControlPlaneSettings):
            self._settings = settings
        else:
            raise ValueError(
                f"Invalid settings type: {type(settings)}. "
                "Expected ControlPlaneSettings, dict, or None"
            )

        self._config = config or load_control_plane_config(self._settings.config_file)
        self._clock = clock or (lambda: datetime.now(UTC))

        self._observability = observability_manager or DefaultObservabilityManager(
            log_level=self._settings.log_level,
            json_format=self._settings.json_logs,
        )

        if usage_store is not None:
            self._usage_store = usage_store
        elif self._settings.redis_url:
            self._usage_store = RedisUsageStore(redis_url=self._settings.redis_url)
        else:
            self._usage_store = InMemoryUsageStore()

        self._policy_engine = AccessPolicyEngine(self._config.effective_policy())
        self._key_manager = KeyManager(observability_manager=self._observability)
        self._quota_gate = QuotaGate(
            key_manager=self._key_manager,
            usage_store=self._usage_store,
            observability_manager=self._observability,
        )

        router_config = self._config.router
        self._router = InternalRouter(
            observability_manager=self._observability,
            name=router_config.name,
            address=router_config.address,
            target_port=router_config.target_port,
            drain_timeout_seconds=router_config.drain_timeout_seconds,
            clock=self._clock,
        )

        self._address_source = address_source or self._build_address_source()
        self._synchronizer = TargetSynchronizer(
            endpoint=self._config.endpoint,
            boundary=self._config.boundary,
            address_source=self._address_source,
            router=self._router,
            observability_manager=self._observability,
            interval_seconds=self._config.sync.interval_seconds,
        )
        self._health_checker = HealthChecker(
            router=self._router,
            prober=prober or HttpHealthProber(),
            observability_manager=self._observability,
            settings=self._config.health_check,
            clock=self._clock,
        )

        self._name_resolver = NameResolver(
            boundary=self._config.boundary,
            zone_name=self._config.dns.zone_name,
            clock=self._clock,
        )
        self._name_resolver.register_alias(self._router.name, lambda: self._router.address)
        for record in self._config.effective_records():
            self._name_resolver.add_record(record)

        self._forwarder: ConnectionForwarder | None = None
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._started = False

    def _build_address_source(self) -> AddressSource:
        endpoint = self._config.endpoint
        if self._config.sync.source == "dns":
            return DnsAddressSource(
                {endpoint.id: self._config.sync.endpoint_dns_name or ""},
                port=self._config.router.target_port,
            )
        return StaticAddressSource({endpoint.id: set(endpoint.addresses)})

    async def __aenter__(self) -> "ControlPlane":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()

    @property
    def config(self) -> ControlPlaneConfig:
        return self._config

    @property
    def settings(self) -> ControlPlaneSettings:
        return self._settings

    @property
    def policy_engine(self) -> AccessPolicyEngine:
        return self._policy_engine

    @property
    def key_manager(self) -> KeyManager:
        return self._key_manager

    @property
    def quota_gate(self) -> QuotaGate:
        return self._quota_gate

    @property
    def router(self) -> InternalRouter:
        return self._router

    @property
    def synchronizer(self) -> TargetSynchronizer:
        return self._synchronizer

    @property
    def health_checker(self) -> HealthChecker:
        return self._health_checker

    @property
    def name_resolver(self) -> NameResolver:
        return self._name_resolver

    @property
    def address_source(self) -> AddressSource:
        return self._address_source

    @property
    def usage_store(self) -> UsageStore:
        return self._usage_store

    @property
    def observability_manager(self) -> ObservabilityManager:
        return self._observability

    @property
    def forwarder(self) -> ConnectionForwarder | None:
        return self._forwarder

    async def initialize(self) -> None:
        """Register usage plans and identities from configuration (idempotent)."""
        async with self._init_lock:
            if self._initialized:
                return
            for plan in self._config.usage_plans:
                await self._key_manager.register_plan(plan)
            for identity in self._config.identities:
                await self._key_manager.create_identity(
                    name=identity.name,
                    value=identity.value,
                    customer_id=identity.customer_id,
                    description=identity.description,
                    usage_plan_id=identity.usage_plan_id,
                    enabled=identity.enabled,
                    identity_id=identity.id,
                )
            self._initialized = True
        await self._observability.log(
            level="INFO",
            message="Control plane initialized",
            context={
                "endpoint_id": self._config.endpoint.id,
                "boundary": self._config.boundary.name,
                "usage_plans": len(self._config.usage_plans),
                "identities": len(self._config.identities),
            },
        )

    async def start(self) -> None:
        """Run one reconciliation, then start background loops (and the listener)."""
        await self.initialize()
        if self._started:
            return
        await self._synchronizer.reconcile()
        await self._health_checker.start()
        await self._synchronizer.start()
        if self._config.router.enable_listener:
            self._forwarder = self._build_forwarder()
            await self._forwarder.start()
        self._started = True

    async def stop(self) -> None:
        """Stop background loops and release resources."""
        if self._forwarder is not None:
            await self._forwarder.stop()
            self._forwarder = None
        await self._synchronizer.stop()
        await self._health_checker.stop()
        await self._router.close()
        await self._usage_store.close()
        self._started = False

    def _build_forwarder(self) -> ConnectionForwarder:
        router_config = self._config.router
        server_context: ssl.SSLContext | None = None
        if router_config.certificate_file and router_config.key_file:
            server_context, _ = create_server_ssl_context(
                router_config.certificate_file,
                router_config.key_file,
                domain=self._config.dns.zone_name,
            )

        upstream_context: ssl.SSLContext | None = None
        if router_config.upstream_tls:
            # Targets are addressed by IP; their certificate is not checked
            upstream_context = ssl.create_default_context()
            upstream_context.check_hostname = False
            upstream_context.verify_mode = ssl.CERT_NONE

        return ConnectionForwarder(
            router=self._router,
            host=router_config.listen_host,
            port=router_config.listen_port,
            ssl_context=server_context,
            upstream_ssl=upstream_context,
            backlog=router_config.backlog,
            connect_timeout=self._config.health_check.timeout_seconds,
            boundary=self._config.boundary,
            ingress_port=router_config.listen_port or None,
        )

    def entry_point_addresses(self) -> set[str]:
        """Addresses the sanctioned endpoint answers from.

        Configured addresses plus those the synchronizer has registered as
        router targets, draining ones included.
        """
        return set(self._config.endpoint.addresses) | {t.address for t in self._router.targets}

    def resolve_source_endpoint(
        self, header_value: str | None, peer_address: str | None
    ) -> str | None:
        """Determine which entry point a request came through.

        Only a peer that is one of the entry point's own addresses inside the
        boundary can vouch for provenance. Such a peer may stamp its id into
        the provenance header; without the header the peer itself identifies
        the endpoint. From any other peer the header is ignored and
        provenance is unknown.
        """
        if not peer_address:
            return None
        try:
            peer = validate_ip_address(peer_address, field="peer_address")
        except ValidationError:
            return None
        if not self._config.boundary.contains(peer) or peer not in self.entry_point_addresses():
            return None
        if header_value and header_value.strip():
            return header_value.strip()
        return self._config.endpoint.id

    async def check_access(
        self, method: str, path: str, source_endpoint_id: str | None
    ) -> None:
        """Evaluate the access policy for a request.

        Args:
            method: HTTP method.
            path: Path relative to the stage (e.g. '/stock').
            source_endpoint_id: Provenance (None when unknown).

        Raises:
            AccessDeniedError: If the policy denies the request.
        """
        request = AccessRequest.for_http(
            method, path, self._config.stage, source_endpoint_id
        )
        evaluation = self._policy_engine.explain(request)
        if evaluation.allowed:
            return
        await self._observability.log(
            level="INFO",
            message="Request denied by access policy",
            context={
                "resource": request.resource,
                "source_endpoint_id": source_endpoint_id,
                "reason": evaluation.reason,
            },
        )
        raise AccessDeniedError(details={"reason": evaluation.reason})

    async def authorize(
        self,
        method: str,
        path: str,
        api_key: str | None,
        now: datetime | None = None,
    ) -> AuthorizationResult:
        """Run the identity & quota gate for a request.

        Returns:
            The OK AuthorizationResult.

        Raises:
            InvalidIdentityError: For unknown, missing or disabled keys.
            ThrottledError: If the identity's bucket is empty.
            QuotaExceededError: If the identity's period quota is used up.
        """
        await self.initialize()
        result = await self._quota_gate.authorize(
            api_key, now or self._clock(), route=route_key(method, path)
        )
        if not result.ok:
            raise result.to_error() or InvalidIdentityError()
        return result

    async def admit(
        self,
        method: str,
        path: str,
        api_key: str | None,
        source_endpoint_id: str | None,
        now: datetime | None = None,
    ) -> AuthorizationResult:
        """Access policy first, then the quota gate.

        Raises:
            GatewayError: AccessDeniedError, InvalidIdentityError, ThrottledError
                or QuotaExceededError.
        """
        await self.check_access(method, path, source_endpoint_id)
        return await self.authorize(method, path, api_key, now=now)

    def resolve(self, domain_name: str, resolver_address: str | None) -> str:
        """Resolve a name of the private zone for an in-boundary resolver."""
        return self._name_resolver.resolve(domain_name, resolver_address)
