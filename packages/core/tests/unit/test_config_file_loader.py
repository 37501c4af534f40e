"""Tests for configuration loading: settings, structured config and file loader."""

import json
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from privgate.domain.components.access_policy_engine import AccessPolicyEngine
from privgate.domain.models.access_policy import AccessRequest, Decision
from privgate.domain.models.usage_plan import QuotaPeriod
from privgate.infrastructure.config.control_plane_config import ControlPlaneConfig
from privgate.infrastructure.config.file_loader import (
    ConfigurationError,
    ConfigurationFileLoader,
    load_control_plane_config,
)
from privgate.infrastructure.config.settings import ControlPlaneSettings

SAMPLE_CONFIG = {
    "stage": "prod",
    "boundary": {"name": "stock-vpc", "cidr": "10.0.0.0/16"},
    "endpoint": {
        "id": "vpce-0a1b2c3d",
        "boundary_name": "stock-vpc",
        "addresses": ["10.0.0.10", "10.0.1.10"],
        "allowed_sources": ["internal-router"],
    },
    "usage_plans": [
        {
            "id": "orders-usage-plan",
            "name": "orders-usage-plan",
            "throttle": {"rate_limit": 5, "burst_limit": 1},
            "quota": {"limit": 100, "period": "WEEK"},
        }
    ],
    "identities": [
        {
            "id": "orders-key",
            "name": "orders-key",
            "value": "another-secret-api-key",
            "usage_plan_id": "orders-usage-plan",
        }
    ],
    "router": {"name": "internal-router", "address": "10.0.0.100"},
    "dns": {"zone_name": "stock.internal.example.com"},
}


class TestControlPlaneSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch) -> None:
        """Test that defaults match the original deployment."""
        for name in ("PRIVGATE_STOCK_DOMAIN", "PRIVGATE_ORDERS_API_KEY", "PRIVGATE_SERVICE"):
            monkeypatch.delenv(name, raising=False)
        settings = ControlPlaneSettings()

        assert settings.stock_domain == "stock.yourdomain.co.uk"
        assert settings.orders_api_key.get_secret_value() == "super-secret-api-key"
        assert settings.orders_failure_mode == "propagate"
        assert settings.provenance_header == "x-source-endpoint-id"
        assert "super-secret-api-key" not in repr(settings)

    def test_from_environment(self, monkeypatch) -> None:
        """Test that PRIVGATE_ variables override defaults."""
        monkeypatch.setenv("PRIVGATE_STOCK_DOMAIN", "stock.internal.example.com")
        monkeypatch.setenv("PRIVGATE_ORDERS_FAILURE_MODE", "bad_gateway")
        monkeypatch.setenv("PRIVGATE_RUN_BACKGROUND_TASKS", "false")
        settings = ControlPlaneSettings()

        assert settings.stock_domain == "stock.internal.example.com"
        assert settings.orders_failure_mode == "bad_gateway"
        assert settings.run_background_tasks is False

    def test_invalid_failure_mode(self) -> None:
        """Test that unknown failure modes are rejected."""
        with pytest.raises(ValidationError):
            ControlPlaneSettings.from_dict({"orders_failure_mode": "retry"})


class TestControlPlaneConfig:
    """Tests for the structured configuration model."""

    def test_defaults_reproduce_original_deployment(self) -> None:
        """Test the built-in defaults."""
        config = ControlPlaneConfig()

        assert config.boundary.cidr == "10.2.0.0/16"
        assert config.boundary.allows_ingress("10.2.4.4", 443) is True
        plan = config.usage_plans[0]
        assert plan.throttle is not None
        assert (plan.throttle.rate_limit, plan.throttle.burst_limit) == (10, 2)
        assert plan.quota is not None
        assert (plan.quota.limit, plan.quota.period) == (500, QuotaPeriod.Day)
        assert "GET /stock" in plan.method_throttles
        assert config.identities[0].customer_id == "orders-api"
        assert config.health_check.healthy_codes == {403}

    def test_default_policy_is_private_endpoint_only(self) -> None:
        """Test that the effective policy denies other endpoints."""
        config = ControlPlaneConfig()
        engine = AccessPolicyEngine(config.effective_policy())

        allowed = AccessRequest.for_http("GET", "/stock", "prod", config.endpoint.id)
        denied = AccessRequest.for_http("GET", "/stock", "prod", "vpce-other")
        assert engine.evaluate(allowed) == Decision.Allow
        assert engine.evaluate(denied) == Decision.Deny

    def test_default_records(self) -> None:
        """Test the default TTL 0 alias record for the zone apex."""
        records = ControlPlaneConfig().effective_records()

        assert len(records) == 1
        assert records[0].name == "stock.yourdomain.co.uk"
        assert records[0].alias == "stock-internal-elb"
        assert records[0].ttl_seconds == 0

    def test_endpoint_outside_boundary_rejected(self) -> None:
        """Test that endpoint addresses must lie inside the boundary."""
        with pytest.raises(ValidationError, match="outside the boundary"):
            ControlPlaneConfig.model_validate(
                {
                    "endpoint": {
                        "id": "vpce-1",
                        "boundary_name": "stock-vpc",
                        "addresses": ["192.168.0.1"],
                    }
                }
            )

    def test_unknown_plan_reference_rejected(self) -> None:
        """Test that identities must reference known plans."""
        with pytest.raises(ValidationError, match="unknown usage plan"):
            ControlPlaneConfig.model_validate(
                {"identities": [{"name": "x", "usage_plan_id": "missing"}]}
            )

    def test_boundary_name_mismatch_rejected(self) -> None:
        """Test that the endpoint must belong to the configured boundary."""
        with pytest.raises(ValidationError, match="does not match"):
            ControlPlaneConfig.model_validate(
                {"endpoint": {"id": "vpce-1", "boundary_name": "other", "addresses": []}}
            )

    def test_endpoint_must_admit_router(self) -> None:
        """Test that the endpoint's ingress has to name the router."""
        with pytest.raises(ValidationError, match="does not admit router 'other-router'"):
            ControlPlaneConfig.model_validate({"router": {"name": "other-router"}})

    def test_endpoint_must_listen_on_target_port(self) -> None:
        """Test that the router's target port has to be one the endpoint accepts."""
        with pytest.raises(ValidationError, match="target port 8443"):
            ControlPlaneConfig.model_validate({"router": {"target_port": 8443}})

    def test_dns_source_requires_name(self) -> None:
        """Test that the DNS address source needs the endpoint DNS name."""
        with pytest.raises(ValidationError, match="endpoint_dns_name"):
            ControlPlaneConfig.model_validate({"sync": {"source": "dns"}})


class TestConfigurationFileLoader:
    """Tests for ConfigurationFileLoader."""

    def test_load_yaml(self, tmp_path: Path) -> None:
        """Test loading a YAML file into a ControlPlaneConfig."""
        path = tmp_path / "privgate.yaml"
        path.write_text(yaml.safe_dump(SAMPLE_CONFIG), encoding="utf-8")

        config = ConfigurationFileLoader(path).load_config()

        assert config.endpoint.id == "vpce-0a1b2c3d"
        assert config.usage_plans[0].quota is not None
        assert config.usage_plans[0].quota.period == QuotaPeriod.Week
        assert config.identities[0].value == "another-secret-api-key"
        assert config.dns.zone_name == "stock.internal.example.com"

    def test_load_json(self, tmp_path: Path) -> None:
        """Test loading a JSON file."""
        path = tmp_path / "privgate.json"
        path.write_text(json.dumps(SAMPLE_CONFIG), encoding="utf-8")

        config = ConfigurationFileLoader(path).load_config()

        assert config.router.address == "10.0.0.100"

    def test_empty_yaml_uses_defaults(self, tmp_path: Path) -> None:
        """Test that an empty file yields the built-in defaults."""
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        config = ConfigurationFileLoader(path).load_config()

        assert config.endpoint.id == "vpce-stock-api"

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing file raises ConfigurationError."""
        with pytest.raises(ConfigurationError, match="not found"):
            ConfigurationFileLoader(tmp_path / "missing.yaml")

    def test_path_from_environment(self, tmp_path: Path, monkeypatch) -> None:
        """Test that PRIVGATE_CONFIG_FILE is used when no path is given."""
        path = tmp_path / "privgate.yaml"
        path.write_text(yaml.safe_dump(SAMPLE_CONFIG), encoding="utf-8")
        monkeypatch.setenv("PRIVGATE_CONFIG_FILE", str(path))

        assert ConfigurationFileLoader().path == path

    def test_no_path_at_all(self, monkeypatch) -> None:
        """Test that a loader without any path fails."""
        monkeypatch.delenv("PRIVGATE_CONFIG_FILE", raising=False)
        with pytest.raises(ConfigurationError, match="PRIVGATE_CONFIG_FILE"):
            ConfigurationFileLoader()

    def test_unsupported_format(self, tmp_path: Path) -> None:
        """Test that only YAML and JSON are accepted."""
        path = tmp_path / "privgate.toml"
        path.write_text("stage = 'prod'", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Unsupported"):
            ConfigurationFileLoader(path).load()

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Test that malformed YAML raises ConfigurationError."""
        path = tmp_path / "bad.yaml"
        path.write_text("boundary: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            ConfigurationFileLoader(path).load()

    def test_non_mapping_yaml(self, tmp_path: Path) -> None:
        """Test that the top level must be a mapping."""
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="dictionary"):
            ConfigurationFileLoader(path).load()

    def test_unknown_section(self, tmp_path: Path) -> None:
        """Test that unknown top-level sections are rejected."""
        path = tmp_path / "extra.yaml"
        path.write_text(yaml.safe_dump({"providers": {}}), encoding="utf-8")
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigurationFileLoader(path).load_config()
        assert exc_info.value.field == "providers"

    def test_validation_error_reports_field(self, tmp_path: Path) -> None:
        """Test that model validation errors name the failing field."""
        path = tmp_path / "invalid.yaml"
        path.write_text(
            yaml.safe_dump({"boundary": {"name": "public", "cidr": "8.8.8.0/24"}}),
            encoding="utf-8",
        )
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigurationFileLoader(path).load_config()
        assert exc_info.value.field == "boundary.cidr"

    def test_load_control_plane_config_defaults(self) -> None:
        """Test that no path yields the defaults."""
        assert load_control_plane_config(None).stage == "prod"

    def test_sample_configuration_loads(self) -> None:
        """Test that the documented sample configuration is valid."""
        path = Path(__file__).parents[4] / "docs" / "examples" / "privgate.yaml"

        config = ConfigurationFileLoader(path).load_config()

        assert config.endpoint.id == "vpce-stock-api"
        assert config.health_check.healthy_codes == {403}
        assert config.usage_plans[0].throttle_for("GET /stock") is not None
