"""HealthChecker component: periodic probing and target health transitions."""

import asyncio
import contextlib
from collections.abc import Callable
from datetime import UTC, datetime

from privgate.domain.components.internal_router import InternalRouter, TargetEvent
from privgate.domain.interfaces.health_prober import HealthProber, ProbeResult
from privgate.domain.interfaces.observability_manager import ObservabilityManager
from privgate.domain.models.state_transition import StateTransition
from privgate.domain.models.target import HealthCheckSettings, Target


class HealthChecker:
    """Runs one periodic probe task per router target.

    Probes run concurrently across targets and are serialized per target.
    Timeouts and connection errors count as failed probes. State changes go
    through Target.record_probe, so a single flaky probe never flips health.

    Tasks follow router membership: new or reactivated targets get a task
    while the checker runs, removed targets have theirs cancelled.
    """

    def __init__(
        self,
        router: InternalRouter,
        prober: HealthProber,
        observability_manager: ObservabilityManager,
        settings: HealthCheckSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize HealthChecker.

        Args:
            router: Router whose targets are probed.
            prober: Sends individual probes.
            observability_manager: ObservabilityManager for events and logging.
            settings: Probe path, expected codes, thresholds and cadence.
            clock: Returns the current time; defaults to UTC wall clock.
        """
        self._router = router
        self._prober = prober
        self._observability = observability_manager
        self._settings = settings or HealthCheckSettings()
        self._clock = clock or (lambda: datetime.now(UTC))

        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._transitions: list[StateTransition] = []
        self._running = False

        router.add_listener(self._on_target_event)

    @property
    def settings(self) -> HealthCheckSettings:
        return self._settings

    @property
    def running(self) -> bool:
        return self._running

    @property
    def transitions(self) -> list[StateTransition]:
        """Health transitions recorded so far (audit trail)."""
        return list(self._transitions)

    def monitored_targets(self) -> set[str]:
        """Keys of targets with a live probe task."""
        return {key for key, task in self._tasks.items() if not task.done()}

    async def check_target(self, target: Target) -> StateTransition | None:
        """Probe one target once and feed the result into its state machine.

        Returns:
            The StateTransition if health changed, None otherwise.
        """
        lock = self._locks.setdefault(target.key, asyncio.Lock())
        async with lock:
            try:
                async with asyncio.timeout(self._settings.timeout_seconds):
                    result = await self._prober.probe(target, self._settings)
            except TimeoutError:
                result = ProbeResult(error="probe timed out")

            # Removed while the probe was in flight
            if self._router.get_target(target.address, target.port) is not target:
                return None

            passed = result.matches(self._settings)
            detail = (
                f"status {result.status_code}" if result.status_code is not None else result.error
            )
            transition = target.record_probe(
                passed,
                healthy_threshold=self._settings.healthy_threshold,
                unhealthy_threshold=self._settings.unhealthy_threshold,
                now=self._clock(),
                detail=detail or "",
            )

        if transition is not None:
            self._transitions.append(transition)
            await self._observability.record_transition(transition)
        else:
            await self._observability.log(
                level="DEBUG",
                message="Health probe completed",
                context={
                    "target": target.key,
                    "passed": passed,
                    "health": target.health.value,
                    "status_code": result.status_code,
                    "error": result.error,
                },
            )
        return transition

    async def check_all(self) -> list[StateTransition]:
        """Probe every target once, concurrently."""
        results = await asyncio.gather(
            *(self.check_target(target) for target in self._router.targets)
        )
        return [t for t in results if t is not None]

    async def start(self) -> None:
        """Start one probe task per current target."""
        if self._running:
            return
        self._running = True
        for target in self._router.targets:
            self._ensure_task(target)

    async def stop(self) -> None:
        """Cancel every probe task and wait for them to finish."""
        self._running = False
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _on_target_event(self, event: TargetEvent, target: Target) -> None:
        if event in (TargetEvent.Added, TargetEvent.Reactivated):
            if self._running:
                self._ensure_task(target)
        elif event == TargetEvent.Removed:
            task = self._tasks.pop(target.key, None)
            if task is not None:
                task.cancel()
            self._locks.pop(target.key, None)

    def _ensure_task(self, target: Target) -> None:
        task = self._tasks.get(target.key)
        if task is not None and not task.done():
            return
        self._tasks[target.key] = asyncio.create_task(
            self._probe_loop(target), name=f"health-check:{target.key}"
        )

    async def _probe_loop(self, target: Target) -> None:
        while self._running:
            try:
                await self.check_target(target)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                await self._observability.log(
                    level="ERROR",
                    message="Health check failed unexpectedly",
                    context={"target": target.key, "error": str(e)},
                )
            await asyncio.sleep(self._settings.interval_seconds)
