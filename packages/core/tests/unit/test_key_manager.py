"""Tests for KeyManager component."""

from unittest.mock import AsyncMock

import pytest

from privgate.domain.components.key_manager import (
    IdentityNotFoundError,
    IdentityRegistrationError,
    KeyManager,
    UsagePlanNotFoundError,
)
from privgate.domain.interfaces.observability_manager import ObservabilityError
from privgate.domain.models.usage_plan import UsagePlan

KEY = "super-secret-api-key"


class TestIdentityCreation:
    """Tests for issuing identities."""

    @pytest.mark.asyncio
    async def test_create_identity_with_value(self, observability, orders_plan: UsagePlan) -> None:
        """Test that an identity is created and bound to its plan."""
        manager = KeyManager(observability_manager=observability)
        await manager.register_plan(orders_plan)

        identity = await manager.create_identity(
            name="orders-rate-limited-api-key",
            value=KEY,
            customer_id="orders-api",
            usage_plan_id=orders_plan.id,
            identity_id="orders-key",
        )

        assert identity.id == "orders-key"
        assert identity.enabled is True
        assert identity.usage_plan_id == "orders-usage-plan"
        assert manager.get_identity("orders-key") is identity
        assert "identity_created" in observability.event_types()
        _, payload = observability.events[-1]
        assert KEY not in str(payload)

    @pytest.mark.asyncio
    async def test_create_identity_generates_value(self, observability) -> None:
        """Test that a key value is generated when omitted."""
        manager = KeyManager(observability_manager=observability)
        identity = await manager.create_identity(name="generated")

        assert len(identity.value.get_secret_value()) >= 20
        assert manager.find_by_value(identity.value.get_secret_value()) is identity

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, observability) -> None:
        """Test that identity ids are unique."""
        manager = KeyManager(observability_manager=observability)
        await manager.create_identity(name="a", value=KEY, identity_id="id-1")

        with pytest.raises(IdentityRegistrationError, match="already exists"):
            await manager.create_identity(name="b", identity_id="id-1")

    @pytest.mark.asyncio
    async def test_duplicate_value_rejected(self, observability) -> None:
        """Test that two identities cannot share a key value."""
        manager = KeyManager(observability_manager=observability)
        await manager.create_identity(name="a", value=KEY)

        with pytest.raises(IdentityRegistrationError, match="key value"):
            await manager.create_identity(name="b", value=KEY)

    @pytest.mark.asyncio
    async def test_unknown_plan_rejected(self, observability) -> None:
        """Test that the bound plan must be registered first."""
        manager = KeyManager(observability_manager=observability)
        with pytest.raises(IdentityRegistrationError, match="Usage plan not found"):
            await manager.create_identity(name="a", value=KEY, usage_plan_id="missing")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "value",
        ["short", "has spaces in the key value here", "x" * 129, "injection;attempt-key-value"],
    )
    async def test_invalid_value_rejected(self, observability, value: str) -> None:
        """Test that malformed key values are rejected."""
        manager = KeyManager(observability_manager=observability)
        with pytest.raises(IdentityRegistrationError, match="Validation failed"):
            await manager.create_identity(name="a", value=value)

    @pytest.mark.asyncio
    async def test_invalid_name_rejected(self, observability) -> None:
        """Test that names are restricted to a safe character set."""
        manager = KeyManager(observability_manager=observability)
        with pytest.raises(IdentityRegistrationError):
            await manager.create_identity(name="bad name!", value=KEY)


class TestIdentityLookup:
    """Tests for looking identities up by key value."""

    @pytest.mark.asyncio
    async def test_find_by_value(self, observability) -> None:
        """Test lookup of known, unknown and missing keys."""
        manager = KeyManager(observability_manager=observability)
        identity = await manager.create_identity(name="a", value=KEY)

        assert manager.find_by_value(KEY) is identity
        assert manager.find_by_value("unknown-key-value-123456") is None
        assert manager.find_by_value(None) is None
        assert manager.find_by_value("") is None

    @pytest.mark.asyncio
    async def test_find_by_value_returns_disabled_identity(self, observability) -> None:
        """Test that disabled identities are still found (the gate rejects them)."""
        manager = KeyManager(observability_manager=observability)
        identity = await manager.create_identity(name="a", value=KEY, enabled=False)
        assert manager.find_by_value(KEY) is identity

    @pytest.mark.asyncio
    async def test_list_identities_by_plan(self, observability, orders_plan: UsagePlan) -> None:
        """Test filtering identities by usage plan."""
        manager = KeyManager(observability_manager=observability)
        await manager.register_plan(orders_plan)
        bound = await manager.create_identity(name="a", usage_plan_id=orders_plan.id)
        await manager.create_identity(name="b")

        assert manager.list_identities(usage_plan_id=orders_plan.id) == [bound]
        assert len(manager.list_identities()) == 2


class TestEnableDisable:
    """Tests for identity state transitions."""

    @pytest.mark.asyncio
    async def test_disable_records_transition(self, observability) -> None:
        """Test that disabling keeps the record and records a transition."""
        manager = KeyManager(observability_manager=observability)
        identity = await manager.create_identity(name="a", value=KEY, identity_id="id-1")

        transition = await manager.disable_identity("id-1", reason="compromised")

        assert identity.enabled is False
        assert manager.get_identity("id-1") is identity
        assert transition.from_state == "enabled"
        assert transition.to_state == "disabled"
        assert transition.trigger == "compromised"
        assert manager.get_transitions("id-1") == [transition]
        assert "state_transition" in observability.event_types()

    @pytest.mark.asyncio
    async def test_enable_after_disable(self, observability) -> None:
        """Test that a disabled identity can be re-enabled."""
        manager = KeyManager(observability_manager=observability)
        identity = await manager.create_identity(name="a", value=KEY, identity_id="id-1")
        await manager.disable_identity("id-1")
        await manager.enable_identity("id-1")

        assert identity.enabled is True
        assert [t.to_state for t in manager.get_transitions()] == ["disabled", "enabled"]

    @pytest.mark.asyncio
    async def test_noop_transition_not_recorded(self, observability) -> None:
        """Test that enabling an enabled identity records nothing."""
        manager = KeyManager(observability_manager=observability)
        await manager.create_identity(name="a", value=KEY, identity_id="id-1")

        transition = await manager.enable_identity("id-1")

        assert transition.from_state == transition.to_state == "enabled"
        assert manager.get_transitions() == []

    @pytest.mark.asyncio
    async def test_unknown_identity(self, observability) -> None:
        """Test that transitions on unknown identities raise."""
        manager = KeyManager(observability_manager=observability)
        with pytest.raises(IdentityNotFoundError):
            await manager.disable_identity("missing")

    @pytest.mark.asyncio
    async def test_transition_survives_observability_failure(self, observability) -> None:
        """Test that the state change stands when the event cannot be emitted."""
        manager = KeyManager(observability_manager=observability)
        identity = await manager.create_identity(name="a", value=KEY, identity_id="id-1")
        observability.record_transition = AsyncMock(side_effect=ObservabilityError("down"))

        await manager.disable_identity("id-1")

        assert identity.enabled is False
        assert any(level == "WARNING" for level, _, _ in observability.logs)


class TestUsagePlans:
    """Tests for usage plan registration and binding."""

    @pytest.mark.asyncio
    async def test_register_and_get_plan(self, observability, orders_plan: UsagePlan) -> None:
        """Test plan registration."""
        manager = KeyManager(observability_manager=observability)
        await manager.register_plan(orders_plan)

        assert manager.get_plan("orders-usage-plan") == orders_plan
        assert manager.get_plan("missing") is None
        assert manager.list_plans() == [orders_plan]
        assert "usage_plan_registered" in observability.event_types()

    @pytest.mark.asyncio
    async def test_add_identity_to_plan(self, observability, orders_plan: UsagePlan) -> None:
        """Test binding an existing identity to a plan."""
        manager = KeyManager(observability_manager=observability)
        await manager.register_plan(orders_plan)
        await manager.create_identity(name="a", value=KEY, identity_id="id-1")

        identity = await manager.add_identity_to_plan("id-1", orders_plan.id)
        assert identity.usage_plan_id == orders_plan.id

    @pytest.mark.asyncio
    async def test_add_identity_to_plan_errors(self, observability, orders_plan: UsagePlan) -> None:
        """Test binding errors for unknown identities and plans."""
        manager = KeyManager(observability_manager=observability)
        await manager.register_plan(orders_plan)
        await manager.create_identity(name="a", value=KEY, identity_id="id-1")

        with pytest.raises(IdentityNotFoundError):
            await manager.add_identity_to_plan("missing", orders_plan.id)
        with pytest.raises(UsagePlanNotFoundError):
            await manager.add_identity_to_plan("id-1", "missing")
