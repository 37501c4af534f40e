"""TargetSynchronizer component: reconciles router targets with endpoint addresses."""

import asyncio
import contextlib
import ipaddress

from privgate.domain.components.internal_router import InternalRouter
from privgate.domain.interfaces.address_source import AddressSource
from privgate.domain.interfaces.observability_manager import ObservabilityManager
from privgate.domain.models.network import Endpoint, IsolationBoundary
from privgate.domain.models.reconciliation import ReconciliationResult
from privgate.domain.models.system_error import AddressSourceError


class TargetSynchronizer:
    """Keeps the router's target set equal to the endpoint's current addresses.

    Each cycle fetches the endpoint addresses, diffs them against the router's
    active targets and applies the difference. Replaying a cycle with no
    underlying change is a no-op. A failed fetch (or an empty address list)
    leaves the target set untouched and is retried on the next cycle.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        boundary: IsolationBoundary,
        address_source: AddressSource,
        router: InternalRouter,
        observability_manager: ObservabilityManager,
        interval_seconds: float = 60.0,
    ) -> None:
        """Initialize TargetSynchronizer.

        Args:
            endpoint: The private entry point whose addresses are tracked.
            boundary: Isolation boundary every target address must belong to.
            address_source: Where the endpoint's current addresses come from.
            router: Router whose target group is kept in sync.
            observability_manager: ObservabilityManager for events and logging.
            interval_seconds: Delay between reconciliation cycles.
        """
        self._endpoint = endpoint
        self._boundary = boundary
        self._address_source = address_source
        self._router = router
        self._observability = observability_manager
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._wakeup = asyncio.Event()
        self._cycle_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def reconcile(self) -> ReconciliationResult:
        """Run one reconciliation cycle.

        Returns:
            ReconciliationResult describing the applied changes, or carrying
            the error when the cycle was skipped.
        """
        # Cycles never interleave, so two diffs cannot race on the same table
        async with self._cycle_lock:
            try:
                fetched = await self._address_source.fetch_addresses(self._endpoint.id)
            except AddressSourceError as e:
                await self._observability.log(
                    level="WARNING",
                    message="Failed to fetch endpoint addresses, keeping current targets",
                    context={"endpoint_id": self._endpoint.id, "error": str(e)},
                )
                return ReconciliationResult(error=str(e))

            desired: set[str] = set()
            skipped: list[str] = []
            for address in sorted(fetched):
                if self._boundary.contains(address.strip()):
                    desired.add(str(ipaddress.ip_address(address.strip())))
                else:
                    skipped.append(address)

            if skipped:
                await self._observability.log(
                    level="WARNING",
                    message="Ignoring endpoint addresses outside the isolation boundary",
                    context={
                        "endpoint_id": self._endpoint.id,
                        "boundary": self._boundary.name,
                        "addresses": skipped,
                    },
                )

            if not desired:
                # A provisioned endpoint always has addresses; treat as transient
                error = "endpoint reported no usable addresses"
                await self._observability.log(
                    level="WARNING",
                    message="Endpoint reported no usable addresses, keeping current targets",
                    context={"endpoint_id": self._endpoint.id},
                )
                return ReconciliationResult(skipped=skipped, error=error)

            self._endpoint.addresses = desired

            expired = self._router.expire_drained()
            current = self._router.active_addresses()
            draining = self._router.draining_addresses()
            to_add = (desired - current) | (desired & draining)
            to_remove = current - desired

            added, reactivated, removed = await self._router.apply_changes(to_add, to_remove)
            result = ReconciliationResult(
                added=added,
                removed=removed,
                reactivated=reactivated,
                skipped=skipped,
            )

        if result.changed or expired:
            await self._observability.emit_event(
                event_type="targets_reconciled",
                payload={
                    "endpoint_id": self._endpoint.id,
                    "added": result.added,
                    "removed": result.removed,
                    "reactivated": result.reactivated,
                    "expired": expired,
                },
            )
        return result

    def notify_change(self) -> None:
        """Trigger a cycle now instead of waiting for the interval."""
        self._wakeup.set()

    async def start(self) -> None:
        """Start the background reconciliation loop (no-op if running)."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="target-synchronizer")

    async def stop(self) -> None:
        """Cancel the loop and wait for it; a cycle in progress finishes its mutation block."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _run(self) -> None:
        while True:
            try:
                await self.reconcile()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                await self._observability.log(
                    level="ERROR",
                    message="Reconciliation cycle failed",
                    context={"endpoint_id": self._endpoint.id, "error": str(e)},
                )
            self._wakeup.clear()
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._wakeup.wait(), timeout=self._interval)
