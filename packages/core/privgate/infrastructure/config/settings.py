"""Configuration settings using pydantic-settings."""

from typing import Any, Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_STOCK_DOMAIN = "stock.yourdomain.co.uk"
# Shared with the orders service. Configurable, but still a static pre-shared
# secret; rotate it by changing both sides.
DEFAULT_ORDERS_API_KEY = "super-secret-api-key"


class ControlPlaneSettings(BaseSettings):
    """Process-level settings for the control plane and the two services.

    Structured configuration (boundary, endpoint, policy, plans, identities,
    router, DNS) lives in the file pointed to by ``config_file``; these are
    the knobs that differ per process and usually come from the environment.
    Environment variables are prefixed with 'PRIVGATE_'
    (e.g., PRIVGATE_STOCK_DOMAIN=stock.internal.example.com).

    Example:
        ```python
        # From environment variables
        settings = ControlPlaneSettings()

        # From dictionary
        settings = ControlPlaneSettings(stock_domain="stock.internal.example.com")
        ```
    """

    model_config = SettingsConfigDict(
        env_prefix="PRIVGATE_",
        case_sensitive=False,
        extra="ignore",
    )

    config_file: str | None = Field(
        default=None,
        description="YAML or JSON control-plane configuration; built-in defaults when unset",
    )

    # Observability configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(default=True, description="JSON log lines instead of console output")

    # Stock service
    provenance_header: str = Field(
        default="x-source-endpoint-id",
        description="Header the private entry point stamps with its endpoint id",
    )
    redis_url: str | None = Field(
        default=None,
        description="Shared usage store for replicated gates; in-memory when unset",
    )
    run_background_tasks: bool = Field(
        default=True,
        description="Run reconciliation and health checks inside the stock service",
    )

    # Orders service
    stock_domain: str = Field(
        default=DEFAULT_STOCK_DOMAIN,
        description="Internal domain of the stock API (dependent call URL host)",
    )
    orders_api_key: SecretStr = Field(
        default=SecretStr(DEFAULT_ORDERS_API_KEY),
        description="Pre-shared key the orders service sends as x-api-key",
    )
    orders_failure_mode: Literal["propagate", "bad_gateway"] = Field(
        default="propagate",
        description="propagate: relay dependent status/body; bad_gateway: any failure -> 502",
    )
    stock_request_timeout_seconds: float = Field(default=10.0, gt=0)
    stock_ca_bundle: str | None = Field(
        default=None,
        description="CA bundle for verifying the internal certificate; system store when unset",
    )

    # Server
    service: Literal["stock", "orders"] = Field(default="stock")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000, ge=1, le=65535)
    shutdown_timeout_seconds: int = Field(default=30, ge=1)
    enable_hsts: bool = Field(default=False)

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "ControlPlaneSettings":
        """Create settings from a dictionary."""
        return cls(**config)
