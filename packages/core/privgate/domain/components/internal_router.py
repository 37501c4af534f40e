"""InternalRouter component: target table, round-robin selection and draining."""

import asyncio
import contextlib
from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime, timedelta
from enum import Enum

from privgate.domain.interfaces.observability_manager import ObservabilityManager
from privgate.domain.models.system_error import NoHealthyTargetsError
from privgate.domain.models.target import Target


class TargetEvent(str, Enum):
    """Membership changes reported to router listeners."""

    Added = "added"
    Draining = "draining"
    Reactivated = "reactivated"
    Removed = "removed"


TargetListener = Callable[[TargetEvent, Target], None]


class InternalRouter:
    """Holds the target group and picks a target for each new connection.

    Only HEALTHY, non-draining targets are eligible. Selection is round-robin
    over eligible targets ordered by key; with no eligible target the router
    fails fast with NoHealthyTargetsError instead of queuing.

    The target table is shared with the reconciliation loop and the health
    checker. Every mutation happens in a synchronous block (no await inside),
    so it is atomic with respect to the event loop; events are logged after
    the block completes.

    Removal is graceful: a removed target stops receiving new connections at
    once and is dropped from the table when its drain window elapses.
    """

    def __init__(
        self,
        observability_manager: ObservabilityManager,
        name: str = "internal-router",
        address: str | None = None,
        target_port: int = 443,
        drain_timeout_seconds: float = 300.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize InternalRouter.

        Args:
            observability_manager: ObservabilityManager for events and logging.
            name: Component name (used as DNS alias target and endpoint source).
            address: Address the router listens on, published through DNS.
            target_port: Port new targets are registered with.
            drain_timeout_seconds: How long a removed target drains before hard removal.
            clock: Returns the current time; defaults to UTC wall clock.
        """
        self._observability = observability_manager
        self._name = name
        self._address = address
        self._target_port = target_port
        self._drain_timeout = drain_timeout_seconds
        self._clock = clock or (lambda: datetime.now(UTC))

        self._targets: dict[str, Target] = {}
        self._drain_tasks: dict[str, asyncio.Task[None]] = {}
        self._listeners: list[TargetListener] = []
        self._next_index = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def address(self) -> str | None:
        """Current router address, looked up by the DNS alias on every query."""
        return self._address

    def set_address(self, address: str) -> None:
        """Replace the router address (e.g. after the router is replaced)."""
        self._address = address

    @property
    def target_port(self) -> int:
        return self._target_port

    @property
    def drain_timeout_seconds(self) -> float:
        return self._drain_timeout

    @property
    def targets(self) -> list[Target]:
        """All targets, including draining ones, ordered by key."""
        return [self._targets[key] for key in sorted(self._targets)]

    def get_target(self, address: str, port: int | None = None) -> Target | None:
        return self._targets.get(f"{address}:{port or self._target_port}")

    def active_addresses(self) -> set[str]:
        """Addresses of targets that are not draining."""
        return {t.address for t in self._targets.values() if not t.draining}

    def draining_addresses(self) -> set[str]:
        return {t.address for t in self._targets.values() if t.draining}

    def healthy_targets(self) -> list[Target]:
        """Targets eligible for new connections, ordered by key."""
        return [t for t in self.targets if t.routable]

    def add_listener(self, listener: TargetListener) -> None:
        """Subscribe to membership changes. Listeners must not block."""
        self._listeners.append(listener)

    def remove_listener(self, listener: TargetListener) -> None:
        with contextlib.suppress(ValueError):
            self._listeners.remove(listener)

    def select_target(self) -> Target:
        """Pick the next eligible target, round-robin.

        Raises:
            NoHealthyTargetsError: If no target is HEALTHY and non-draining.
        """
        candidates = self.healthy_targets()
        if not candidates:
            raise NoHealthyTargetsError(
                details={
                    "targets": len(self._targets),
                    "draining": len(self.draining_addresses()),
                }
            )
        target = candidates[self._next_index % len(candidates)]
        self._next_index = (self._next_index + 1) % len(candidates)
        return target

    @contextlib.asynccontextmanager
    async def connection(self) -> AsyncIterator[Target]:
        """Lease a target for one connection, tracking in-flight connections.

        Example:
            ```python
            async with router.connection() as target:
                reader, writer = await asyncio.open_connection(target.address, target.port)
            ```

        Raises:
            NoHealthyTargetsError: If no target is eligible.
        """
        target = self.select_target()
        target.active_connections += 1
        try:
            yield target
        finally:
            target.active_connections = max(0, target.active_connections - 1)

    async def apply_changes(
        self, add: set[str], remove: set[str]
    ) -> tuple[list[str], list[str], list[str]]:
        """Apply one reconciliation step to the target table.

        New addresses become INITIAL targets, draining targets whose address
        reappears are reset to INITIAL, and removed addresses start draining.

        Args:
            add: Addresses that should be active.
            remove: Addresses that should no longer receive connections.

        Returns:
            Tuple of (added, reactivated, removed) addresses.
        """
        now = self._clock()
        added: list[str] = []
        reactivated: list[str] = []
        removed: list[str] = []

        # Mutations first, in one synchronous block
        for address in sorted(add):
            key = f"{address}:{self._target_port}"
            existing = self._targets.get(key)
            if existing is None:
                target = Target(address=address, port=self._target_port, registered_at=now)
                self._targets[key] = target
                added.append(address)
                self._notify(TargetEvent.Added, target)
            elif existing.draining:
                self._cancel_drain(key)
                existing.reset()
                reactivated.append(address)
                self._notify(TargetEvent.Reactivated, existing)

        for address in sorted(remove):
            key = f"{address}:{self._target_port}"
            target = self._targets.get(key)
            if target is None or target.draining:
                continue
            target.draining = True
            target.draining_since = now
            removed.append(address)
            self._schedule_drain(key)
            self._notify(TargetEvent.Draining, target)

        for address in added:
            await self._observability.emit_event(
                event_type="target_registered",
                payload={"router": self._name, "address": address, "port": self._target_port},
            )
        for address in reactivated:
            await self._observability.emit_event(
                event_type="target_reactivated",
                payload={"router": self._name, "address": address, "port": self._target_port},
            )
        for address in removed:
            await self._observability.emit_event(
                event_type="target_draining",
                payload={
                    "router": self._name,
                    "address": address,
                    "port": self._target_port,
                    "drain_timeout_seconds": self._drain_timeout,
                },
            )
        return added, reactivated, removed

    def expire_drained(self, now: datetime | None = None) -> list[str]:
        """Hard-remove targets whose drain window has elapsed.

        Returns:
            Keys of the removed targets.
        """
        now = now or self._clock()
        window = timedelta(seconds=self._drain_timeout)
        expired = [
            key
            for key, target in self._targets.items()
            if target.draining
            and target.draining_since is not None
            and now - target.draining_since >= window
        ]
        for key in expired:
            self._remove(key)
        return expired

    def _schedule_drain(self, key: str) -> None:
        self._cancel_drain(key)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: expire_drained() removes the target later
            return
        self._drain_tasks[key] = loop.create_task(self._drain(key))

    def _cancel_drain(self, key: str) -> None:
        task = self._drain_tasks.pop(key, None)
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _drain(self, key: str) -> None:
        await asyncio.sleep(self._drain_timeout)
        target = self._targets.get(key)
        if target is None or not target.draining:
            return
        self._drain_tasks.pop(key, None)
        self._remove(key)
        await self._observability.emit_event(
            event_type="target_deregistered",
            payload={
                "router": self._name,
                "target": key,
                "active_connections": target.active_connections,
            },
        )

    def _remove(self, key: str) -> None:
        target = self._targets.pop(key, None)
        self._cancel_drain(key)
        if target is not None:
            self._notify(TargetEvent.Removed, target)

    def _notify(self, event: TargetEvent, target: Target) -> None:
        for listener in list(self._listeners):
            listener(event, target)

    async def close(self) -> None:
        """Cancel pending drain timers; draining targets stay in the table."""
        tasks = list(self._drain_tasks.values())
        self._drain_tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
