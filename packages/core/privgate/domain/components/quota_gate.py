"""QuotaGate component: API key authentication, throttling and period quotas."""

import math
from datetime import UTC, datetime

from privgate.domain.components.key_manager import KeyManager
from privgate.domain.interfaces.observability_manager import ObservabilityManager
from privgate.domain.interfaces.usage_store import UsageStore
from privgate.domain.models.authorization_result import (
    AuthorizationResult,
    RejectionReason,
)
from privgate.domain.models.usage_plan import route_key


class QuotaGate:
    """Authorizes a request against an identity and its usage plan.

    Steps, in order, each terminal on failure:

    1. Identity lookup: unknown, missing or disabled key -> invalid-key.
    2. Usage plan resolution: unbound or unknown plan -> invalid-key.
    3. Token bucket (burst capacity, rate refill per second). A per-method
       override replaces the plan throttle for that route only and uses its
       own bucket -> throttled.
    4. Period quota counted per (identity, window start) -> quota-exceeded.

    The gate never retries; callers back off on their own.
    """

    def __init__(
        self,
        key_manager: KeyManager,
        usage_store: UsageStore,
        observability_manager: ObservabilityManager,
    ) -> None:
        """Initialize QuotaGate.

        Args:
            key_manager: Registry of identities and usage plans.
            usage_store: Token bucket and quota counter storage.
            observability_manager: ObservabilityManager for events and logging.
        """
        self._key_manager = key_manager
        self._usage_store = usage_store
        self._observability = observability_manager

    async def authorize(
        self,
        api_key: str | None,
        now: datetime,
        route: str | None = None,
    ) -> AuthorizationResult:
        """Decide whether one request may proceed.

        Args:
            api_key: Value of the x-api-key header (None if absent).
            now: Request time. Naive datetimes are taken as UTC.
            route: Optional 'METHOD /path' used for per-method overrides.

        Returns:
            AuthorizationResult, OK or REJECTED with a reason.

        Raises:
            UsageStoreError: If counters cannot be read or updated.
        """
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)

        identity = self._key_manager.find_by_value(api_key)
        if identity is None or not identity.enabled:
            await self._reject_log(
                RejectionReason.InvalidKey,
                identity_id=identity.id if identity else None,
            )
            return AuthorizationResult.rejected(
                RejectionReason.InvalidKey,
                identity_id=identity.id if identity else None,
            )

        plan = (
            self._key_manager.get_plan(identity.usage_plan_id)
            if identity.usage_plan_id
            else None
        )
        if plan is None:
            await self._reject_log(
                RejectionReason.InvalidKey,
                identity_id=identity.id,
                detail="identity has no usage plan",
            )
            return AuthorizationResult.rejected(
                RejectionReason.InvalidKey, identity_id=identity.id
            )

        throttle = plan.throttle_for(route)
        if throttle is not None:
            bucket_key = identity.id
            if route is not None:
                method, _, path = route.partition(" ")
                normalized_route = route_key(method, path)
                if normalized_route in plan.method_throttles:
                    bucket_key = f"{identity.id}:{normalized_route}"

            decision = await self._usage_store.consume_token(
                bucket_key, throttle, now=now.timestamp()
            )
            if not decision.allowed:
                retry_after = max(1, math.ceil(decision.retry_after_seconds))
                await self._reject_log(
                    RejectionReason.Throttled,
                    identity_id=identity.id,
                    usage_plan_id=plan.id,
                    retry_after=retry_after,
                )
                return AuthorizationResult.rejected(
                    RejectionReason.Throttled,
                    identity_id=identity.id,
                    usage_plan_id=plan.id,
                    retry_after=retry_after,
                )

        remaining_quota: int | None = None
        if plan.quota is not None:
            window_start = plan.quota.period.window_start(now)
            resets_at = plan.quota.period.next_reset(now)
            quota = await self._usage_store.increment_quota(
                f"{identity.id}:{window_start.isoformat()}",
                plan.quota.limit,
                resets_at=resets_at,
                now=now,
            )
            if not quota.allowed:
                retry_after = max(1, math.ceil((resets_at - now).total_seconds()))
                await self._reject_log(
                    RejectionReason.QuotaExceeded,
                    identity_id=identity.id,
                    usage_plan_id=plan.id,
                    retry_after=retry_after,
                )
                return AuthorizationResult.rejected(
                    RejectionReason.QuotaExceeded,
                    identity_id=identity.id,
                    usage_plan_id=plan.id,
                    retry_after=retry_after,
                )
            remaining_quota = quota.remaining

        return AuthorizationResult.allowed(
            identity_id=identity.id,
            usage_plan_id=plan.id,
            remaining_quota=remaining_quota,
        )

    async def _reject_log(self, reason: RejectionReason, **context: object) -> None:
        await self._observability.log(
            level="INFO",
            message="Request rejected by quota gate",
            context={"reason": reason.value, **{k: v for k, v in context.items() if v is not None}},
        )
