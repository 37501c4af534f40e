"""KeyManager component for identity (API key) and usage plan lifecycle."""

import hmac
import secrets
import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import SecretStr

from privgate.domain.interfaces.observability_manager import ObservabilityManager
from privgate.domain.models.identity import Identity
from privgate.domain.models.state_transition import StateTransition
from privgate.domain.models.usage_plan import UsagePlan
from privgate.infrastructure.utils.validation import (
    ValidationError,
    validate_key_value,
    validate_metadata,
    validate_name,
)


class IdentityRegistrationError(Exception):
    """Raised when identity registration fails."""

    pass


class IdentityNotFoundError(Exception):
    """Raised when an identity is not found."""

    pass


class UsagePlanNotFoundError(Exception):
    """Raised when a usage plan is not found."""

    pass


class KeyManager:
    """Manages identities and the usage plans they are bound to.

    Identities are created once and never deleted; disabling keeps the record
    and its plan binding but makes the key invalid. Every enable/disable is
    recorded as a StateTransition.

    The registry is built at startup from configuration and handed to the
    QuotaGate; there is no global lookup.
    """

    def __init__(self, observability_manager: ObservabilityManager) -> None:
        """Initialize KeyManager.

        Args:
            observability_manager: ObservabilityManager for events and logging.
        """
        self._observability = observability_manager
        self._identities: dict[str, Identity] = {}
        self._plans: dict[str, UsagePlan] = {}
        self._transitions: list[StateTransition] = []

    async def create_identity(
        self,
        name: str,
        value: str | None = None,
        customer_id: str | None = None,
        description: str = "",
        usage_plan_id: str | None = None,
        enabled: bool = True,
        identity_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Identity:
        """Issue a new identity.

        Args:
            name: Human-readable key name.
            value: Key value. Generated when omitted.
            customer_id: Optional customer identifier.
            description: Optional description.
            usage_plan_id: Usage plan to bind; must already be registered.
            enabled: Initial enabled flag.
            identity_id: Stable id. Generated when omitted.
            metadata: Optional free-form metadata.

        Returns:
            The created Identity.

        Raises:
            IdentityRegistrationError: On invalid input, a duplicate id or key
                value, or an unknown usage plan.
        """
        if value is None:
            value = secrets.token_urlsafe(30)

        try:
            validate_name(name)
            validate_key_value(value)
            if customer_id:
                validate_name(customer_id, field="customer_id")
            validate_metadata(metadata)
        except ValidationError as e:
            raise IdentityRegistrationError(f"Validation failed: {e}") from e

        identity_id = identity_id or str(uuid.uuid4())
        if identity_id in self._identities:
            raise IdentityRegistrationError(f"Identity already exists: {identity_id}")
        if self._lookup_value(value.strip()) is not None:
            raise IdentityRegistrationError("An identity with this key value already exists")
        if usage_plan_id is not None and usage_plan_id not in self._plans:
            raise IdentityRegistrationError(f"Usage plan not found: {usage_plan_id}")

        identity = Identity(
            id=identity_id,
            name=name,
            value=SecretStr(value.strip()),
            customer_id=customer_id,
            description=description,
            enabled=enabled,
            usage_plan_id=usage_plan_id,
            metadata=metadata or {},
        )
        self._identities[identity.id] = identity

        await self._emit(
            "identity_created",
            {
                "identity_id": identity.id,
                "name": identity.name,
                "customer_id": identity.customer_id,
                "usage_plan_id": identity.usage_plan_id,
                "enabled": identity.enabled,
            },
        )
        return identity

    async def disable_identity(self, identity_id: str, reason: str = "manual") -> StateTransition:
        """Disable an identity without deleting it.

        Raises:
            IdentityNotFoundError: If the identity does not exist.
        """
        return await self._set_enabled(identity_id, False, reason)

    async def enable_identity(self, identity_id: str, reason: str = "manual") -> StateTransition:
        """Re-enable a disabled identity.

        Raises:
            IdentityNotFoundError: If the identity does not exist.
        """
        return await self._set_enabled(identity_id, True, reason)

    async def _set_enabled(self, identity_id: str, enabled: bool, reason: str) -> StateTransition:
        identity = self._identities.get(identity_id)
        if identity is None:
            raise IdentityNotFoundError(f"Identity not found: {identity_id}")

        from_state = "enabled" if identity.enabled else "disabled"
        to_state = "enabled" if enabled else "disabled"
        transition = StateTransition(
            entity_type="Identity",
            entity_id=identity_id,
            from_state=from_state,
            to_state=to_state,
            trigger=reason,
        )
        if from_state == to_state:
            # No-op transitions are returned but not recorded
            return transition

        identity.enabled = enabled
        identity.updated_at = datetime.now(UTC)
        self._transitions.append(transition)

        try:
            await self._observability.record_transition(transition)
        except Exception as e:
            # The state change stands even if the event cannot be emitted
            await self._observability.log(
                level="WARNING",
                message=f"Failed to emit state_transition event: {e}",
                context={"identity_id": identity_id, "to_state": to_state},
            )
        return transition

    def get_identity(self, identity_id: str) -> Identity | None:
        """Retrieve an identity by id.

        Returns:
            The Identity if found, None otherwise.
        """
        return self._identities.get(identity_id)

    def find_by_value(self, value: str | None) -> Identity | None:
        """Look up the identity owning a key value.

        Every stored key is compared with hmac.compare_digest so the lookup
        time does not depend on how much of the key matched.

        Args:
            value: Key value presented by the caller (None or empty if absent).

        Returns:
            The Identity (enabled or not) if the key is known, None otherwise.
        """
        if not value:
            return None
        return self._lookup_value(value)

    def _lookup_value(self, value: str) -> Identity | None:
        presented = value.encode("utf-8")
        found: Identity | None = None
        for identity in self._identities.values():
            stored = identity.value.get_secret_value().encode("utf-8")
            if hmac.compare_digest(stored, presented):
                found = identity
        return found

    def list_identities(self, usage_plan_id: str | None = None) -> list[Identity]:
        """List identities, optionally only those bound to one plan."""
        identities = list(self._identities.values())
        if usage_plan_id is not None:
            identities = [i for i in identities if i.usage_plan_id == usage_plan_id]
        return identities

    async def register_plan(self, plan: UsagePlan) -> UsagePlan:
        """Register (or replace) a usage plan."""
        self._plans[plan.id] = plan
        await self._emit(
            "usage_plan_registered",
            {
                "usage_plan_id": plan.id,
                "name": plan.name,
                "stage": plan.stage,
                "rate_limit": plan.throttle.rate_limit if plan.throttle else None,
                "burst_limit": plan.throttle.burst_limit if plan.throttle else None,
                "quota_limit": plan.quota.limit if plan.quota else None,
                "quota_period": plan.quota.period.value if plan.quota else None,
                "method_overrides": sorted(plan.method_throttles),
            },
        )
        return plan

    def get_plan(self, plan_id: str) -> UsagePlan | None:
        """Retrieve a usage plan by id.

        Returns:
            The UsagePlan if found, None otherwise.
        """
        return self._plans.get(plan_id)

    def list_plans(self) -> list[UsagePlan]:
        return list(self._plans.values())

    async def add_identity_to_plan(self, identity_id: str, plan_id: str) -> Identity:
        """Bind an identity to a usage plan, replacing any previous binding.

        Raises:
            IdentityNotFoundError: If the identity does not exist.
            UsagePlanNotFoundError: If the plan does not exist.
        """
        identity = self._identities.get(identity_id)
        if identity is None:
            raise IdentityNotFoundError(f"Identity not found: {identity_id}")
        if plan_id not in self._plans:
            raise UsagePlanNotFoundError(f"Usage plan not found: {plan_id}")

        identity.usage_plan_id = plan_id
        identity.updated_at = datetime.now(UTC)
        await self._emit(
            "identity_bound_to_plan",
            {"identity_id": identity_id, "usage_plan_id": plan_id},
        )
        return identity

    def get_transitions(self, identity_id: str | None = None) -> list[StateTransition]:
        """Return the recorded enable/disable audit trail."""
        if identity_id is None:
            return list(self._transitions)
        return [t for t in self._transitions if t.entity_id == identity_id]

    async def _emit(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            await self._observability.emit_event(event_type=event_type, payload=payload)
        except Exception as e:
            await self._observability.log(
                level="WARNING",
                message=f"Failed to emit {event_type} event: {e}",
                context=payload,
            )
