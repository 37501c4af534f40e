"""Tests for domain models."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from privgate.domain.models.authorization_result import AuthorizationResult, RejectionReason
from privgate.domain.models.domain_record import DomainRecord
from privgate.domain.models.identity import Identity
from privgate.domain.models.network import Endpoint, IngressRule, IsolationBoundary, Protocol
from privgate.domain.models.reconciliation import ReconciliationResult
from privgate.domain.models.system_error import (
    AccessDeniedError,
    ErrorCategory,
    GatewayError,
    InvalidIdentityError,
    NoHealthyTargetsError,
    QuotaExceededError,
    ThrottledError,
)
from privgate.domain.models.target import HealthCheckSettings, HealthStatus, Target
from privgate.domain.models.usage_plan import (
    QuotaPeriod,
    ThrottleSettings,
    UsagePlan,
    route_key,
)


class TestQuotaPeriod:
    """Tests for fixed quota windows."""

    def test_day_window_starts_at_midnight_utc(self) -> None:
        """Test that a daily window starts at 00:00 and ends the next midnight."""
        now = datetime(2024, 3, 14, 23, 59, 59, tzinfo=UTC)
        assert QuotaPeriod.Day.window_start(now) == datetime(2024, 3, 14, tzinfo=UTC)
        assert QuotaPeriod.Day.next_reset(now) == datetime(2024, 3, 15, tzinfo=UTC)

    def test_week_window_starts_on_monday(self) -> None:
        """Test that a weekly window starts on Monday 00:00 UTC."""
        thursday = datetime(2024, 3, 14, 8, 0, tzinfo=UTC)
        assert QuotaPeriod.Week.window_start(thursday) == datetime(2024, 3, 11, tzinfo=UTC)
        assert QuotaPeriod.Week.next_reset(thursday) == datetime(2024, 3, 18, tzinfo=UTC)

    def test_month_window_rolls_over_year(self) -> None:
        """Test that the December window resets on January 1st."""
        now = datetime(2024, 12, 31, 10, 0, tzinfo=UTC)
        assert QuotaPeriod.Month.window_start(now) == datetime(2024, 12, 1, tzinfo=UTC)
        assert QuotaPeriod.Month.next_reset(now) == datetime(2025, 1, 1, tzinfo=UTC)


class TestUsagePlan:
    """Tests for UsagePlan and per-method overrides."""

    def test_route_key_normalizes_method_and_slashes(self) -> None:
        """Test that route keys ignore method case and surrounding slashes."""
        assert route_key("get", "/stock/") == "GET /stock"
        assert route_key("POST", "orders") == "POST /orders"
        assert route_key("GET", "/") == "GET /"

    def test_override_keys_are_normalized(self) -> None:
        """Test that override keys are stored in canonical form."""
        plan = UsagePlan(
            id="p1",
            name="p1",
            method_throttles={"get stock/": ThrottleSettings(rate_limit=1, burst_limit=1)},
        )
        assert list(plan.method_throttles) == ["GET /stock"]

    def test_invalid_override_key_rejected(self) -> None:
        """Test that override keys without a path are rejected."""
        with pytest.raises(ValidationError):
            UsagePlan(
                id="p1",
                name="p1",
                method_throttles={"GET": ThrottleSettings(rate_limit=1, burst_limit=1)},
            )

    def test_throttle_for_prefers_override(self) -> None:
        """Test that the override replaces the plan throttle for its route only."""
        base = ThrottleSettings(rate_limit=10, burst_limit=2)
        override = ThrottleSettings(rate_limit=1, burst_limit=1)
        plan = UsagePlan(
            id="p1",
            name="p1",
            throttle=base,
            method_throttles={"GET /stock": override},
        )
        assert plan.throttle_for("GET /stock") == override
        assert plan.throttle_for("get /stock/") == override
        assert plan.throttle_for("POST /stock") == base
        assert plan.throttle_for(None) == base

    def test_throttle_settings_must_be_positive(self) -> None:
        """Test that rate and burst must be positive."""
        with pytest.raises(ValidationError):
            ThrottleSettings(rate_limit=0, burst_limit=2)
        with pytest.raises(ValidationError):
            ThrottleSettings(rate_limit=1, burst_limit=0)


class TestIdentity:
    """Tests for the Identity model."""

    def test_short_key_rejected(self) -> None:
        """Test that keys shorter than 20 characters are rejected."""
        with pytest.raises(ValidationError):
            Identity(id="id-1", name="short", value="too-short")

    def test_repr_hides_value(self) -> None:
        """Test that repr never exposes the key value."""
        identity = Identity(id="id-1", name="orders", value="super-secret-api-key")
        assert "super-secret-api-key" not in repr(identity)
        assert "super-secret-api-key" not in str(identity)
        assert identity.value.get_secret_value() == "super-secret-api-key"


class TestTarget:
    """Tests for the target health state machine."""

    def test_new_target_is_initial_and_not_routable(self) -> None:
        """Test that a registered target receives no traffic until healthy."""
        target = Target(address="10.2.0.10")
        assert target.health == HealthStatus.Initial
        assert target.routable is False
        assert target.key == "10.2.0.10:443"

    def test_healthy_after_consecutive_passes(self) -> None:
        """Test that N consecutive passes are required to become healthy."""
        target = Target(address="10.2.0.10")
        assert target.record_probe(True, healthy_threshold=2) is None
        transition = target.record_probe(True, healthy_threshold=2)

        assert transition is not None
        assert transition.from_state == "initial"
        assert transition.to_state == "healthy"
        assert transition.entity_id == "10.2.0.10:443"
        assert target.routable is True

    def test_single_failure_does_not_flip_healthy_target(self) -> None:
        """Test that one flaky probe never changes state."""
        target = Target(address="10.2.0.10", health=HealthStatus.Healthy)
        assert target.record_probe(False, unhealthy_threshold=2) is None
        assert target.health == HealthStatus.Healthy
        assert target.record_probe(True) is None
        assert target.consecutive_failures == 0

    def test_unhealthy_after_consecutive_failures(self) -> None:
        """Test that M consecutive failures make a target unhealthy."""
        target = Target(address="10.2.0.10", health=HealthStatus.Healthy)
        target.record_probe(False, unhealthy_threshold=2)
        transition = target.record_probe(False, unhealthy_threshold=2, detail="status 500")

        assert transition is not None
        assert transition.to_state == "unhealthy"
        assert transition.context == {"detail": "status 500"}
        assert target.routable is False

    def test_draining_target_is_not_routable(self) -> None:
        """Test that draining excludes a healthy target from selection."""
        target = Target(address="10.2.0.10", health=HealthStatus.Healthy, draining=True)
        assert target.routable is False

    def test_reset_returns_to_initial(self) -> None:
        """Test that reset clears health and draining state."""
        target = Target(
            address="10.2.0.10",
            health=HealthStatus.Healthy,
            draining=True,
            draining_since=datetime(2024, 1, 1, tzinfo=UTC),
            consecutive_successes=5,
        )
        target.reset()
        assert target.health == HealthStatus.Initial
        assert target.draining is False
        assert target.draining_since is None
        assert target.consecutive_successes == 0


class TestHealthCheckSettings:
    """Tests for HealthCheckSettings parsing."""

    def test_defaults_expect_403(self) -> None:
        """Test that the default probe expects the unauthenticated 403."""
        settings = HealthCheckSettings()
        assert settings.healthy_codes == {403}
        assert settings.path == "/"
        assert settings.interval_seconds == 30.0

    def test_codes_from_string(self) -> None:
        """Test that comma separated codes are accepted."""
        settings = HealthCheckSettings(healthy_codes="200, 403")
        assert settings.healthy_codes == {200, 403}

    def test_invalid_protocol_rejected(self) -> None:
        """Test that only http and https are accepted."""
        with pytest.raises(ValidationError):
            HealthCheckSettings(protocol="tcp")


class TestNetwork:
    """Tests for isolation boundary and endpoint models."""

    def test_boundary_requires_private_range(self) -> None:
        """Test that a public range is rejected."""
        with pytest.raises(ValidationError):
            IsolationBoundary(name="public", cidr="8.8.8.0/24")

    def test_boundary_rejects_internet_route(self) -> None:
        """Test that an isolation boundary cannot route to the internet."""
        with pytest.raises(ValidationError):
            IsolationBoundary(name="vpc", cidr="10.0.0.0/16", has_internet_route=True)

    def test_contains(self, boundary: IsolationBoundary) -> None:
        """Test membership checks for literals, hostnames and None."""
        assert boundary.contains("10.2.255.1") is True
        assert boundary.contains("10.3.0.1") is False
        assert boundary.contains("stock.example.com") is False
        assert boundary.contains(None) is False

    def test_allows_ingress(self, boundary: IsolationBoundary) -> None:
        """Test that ingress needs a matching source, port and protocol."""
        assert boundary.allows_ingress("10.2.0.5", 443) is True
        assert boundary.allows_ingress("10.2.0.5", 80) is False
        assert boundary.allows_ingress("10.2.0.5", 443, Protocol.UDP) is False
        assert boundary.allows_ingress("192.168.0.5", 443) is False

    def test_ingress_rule_normalizes_cidr(self) -> None:
        """Test that host bits are dropped from the source network."""
        rule = IngressRule(source_cidr="10.2.3.4/16")
        assert rule.source_cidr == "10.2.0.0/16"

    def test_endpoint_addresses_normalized(self) -> None:
        """Test that endpoint addresses are canonicalized."""
        endpoint = Endpoint(
            id="vpce-1",
            addresses={" 10.2.0.10 ", "fd00:0:0:0::1"},
            boundary_name="vpc",
        )
        assert endpoint.addresses == {"10.2.0.10", "fd00::1"}
        assert endpoint.provisioned is True
        assert endpoint.accepts(443) is True
        assert endpoint.accepts(80) is False

    def test_endpoint_rejects_hostnames(self) -> None:
        """Test that endpoint addresses must be IP literals."""
        with pytest.raises(ValidationError):
            Endpoint(id="vpce-1", addresses={"stock.internal"}, boundary_name="vpc")


class TestDomainRecord:
    """Tests for private zone records."""

    def test_name_normalized(self) -> None:
        """Test that names are lowercased without the trailing dot."""
        record = DomainRecord(name="Stock.Example.COM.", values=["10.2.0.100"])
        assert record.name == "stock.example.com"
        assert record.ttl_seconds == 0

    def test_requires_values_or_alias(self) -> None:
        """Test that exactly one of values and alias must be set."""
        with pytest.raises(ValidationError):
            DomainRecord(name="stock.example.com")
        with pytest.raises(ValidationError):
            DomainRecord(name="stock.example.com", values=["10.2.0.1"], alias="router")

    def test_only_a_records(self) -> None:
        """Test that other record types are rejected."""
        with pytest.raises(ValidationError):
            DomainRecord(name="stock.example.com", record_type="CNAME", alias="router")


class TestAuthorizationResult:
    """Tests for mapping gate outcomes onto errors."""

    def test_ok_has_no_error(self) -> None:
        """Test that an OK result maps to no error."""
        result = AuthorizationResult.allowed("id-1", "plan-1", remaining_quota=3)
        assert result.to_error() is None

    @pytest.mark.parametrize(
        ("reason", "error_type", "status"),
        [
            (RejectionReason.InvalidKey, InvalidIdentityError, 403),
            (RejectionReason.Throttled, ThrottledError, 429),
            (RejectionReason.QuotaExceeded, QuotaExceededError, 429),
        ],
    )
    def test_rejections_map_to_errors(
        self, reason: RejectionReason, error_type: type[GatewayError], status: int
    ) -> None:
        """Test that each rejection reason maps to its error and status."""
        result = AuthorizationResult.rejected(reason, retry_after=7)
        error = result.to_error()
        assert isinstance(error, error_type)
        assert error.status_code == status

    def test_throttled_error_carries_retry_after(self) -> None:
        """Test that Retry-After is carried through."""
        error = AuthorizationResult.rejected(RejectionReason.Throttled, retry_after=2).to_error()
        assert error is not None
        assert error.retry_after == 2
        assert error.retryable is True


class TestGatewayErrors:
    """Tests for the error taxonomy."""

    def test_categories_and_status_codes(self) -> None:
        """Test default categories, status codes and retryability."""
        assert AccessDeniedError().status_code == 403
        assert AccessDeniedError().category == ErrorCategory.AccessDenied
        assert AccessDeniedError().retryable is False
        assert NoHealthyTargetsError().status_code == 503
        assert QuotaExceededError().retryable is True

    def test_category_from_string(self) -> None:
        """Test that categories can be given as strings."""
        error = GatewayError(category="throttled", message="slow down")
        assert error.category == ErrorCategory.Throttled
        assert str(error) == "slow down"


class TestReconciliationResult:
    """Tests for ReconciliationResult."""

    def test_changed(self) -> None:
        """Test that only additions, removals and reactivations count as change."""
        assert ReconciliationResult().changed is False
        assert ReconciliationResult(skipped=["8.8.8.8"]).changed is False
        assert ReconciliationResult(added=["10.2.0.10"]).changed is True
        assert ReconciliationResult(reactivated=["10.2.0.10"]).changed is True
