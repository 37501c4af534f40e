"""Configuration file loader for YAML and JSON files."""

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from privgate.infrastructure.config.control_plane_config import ControlPlaneConfig


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize ConfigurationError.

        Args:
            message: Human-readable error message.
            field: Optional field name that failed validation.
        """
        self.message = message
        self.field = field
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return error message with field name if available."""
        if self.field:
            return f"Configuration error in field '{self.field}': {self.message}"
        return self.message


class ConfigurationFileLoader:
    """Loads control-plane configuration from YAML or JSON files.

    Top-level sections (all optional, defaults apply to missing ones):
    stage, boundary, endpoint, policy, usage_plans, identities, router,
    sync, health_check, dns.

    Example:
        ```yaml
        boundary:
          name: stock-vpc
          cidr: 10.2.0.0/16
        endpoint:
          id: vpce-0a1b2c3d
          boundary_name: stock-vpc
          addresses: [10.2.0.10, 10.2.1.10]
        usage_plans:
          - id: orders-usage-plan
            name: orders-usage-plan
            throttle: {rate_limit: 10, burst_limit: 2}
            quota: {limit: 500, period: DAY}
        ```
    """

    ALLOWED_SECTIONS = frozenset(ControlPlaneConfig.model_fields)

    def __init__(self, config_file_path: str | Path | None = None) -> None:
        """Initialize ConfigurationFileLoader.

        Args:
            config_file_path: Path to configuration file. If None, attempts to
                            load from PRIVGATE_CONFIG_FILE environment variable.

        Raises:
            ConfigurationError: If no path is available or the file does not exist.
        """
        if config_file_path is None:
            config_file_path = os.getenv("PRIVGATE_CONFIG_FILE")
            if not config_file_path:
                raise ConfigurationError(
                    "Configuration file path not provided and PRIVGATE_CONFIG_FILE "
                    "environment variable is not set"
                )

        self._config_path = Path(config_file_path)
        if not self._config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {self._config_path}")

    @property
    def path(self) -> Path:
        return self._config_path

    def load(self) -> dict[str, Any]:
        """Load raw configuration data from file.

        Automatically detects file format (YAML or JSON) based on file extension.

        Raises:
            ConfigurationError: If file format is invalid or file cannot be parsed.
        """
        suffix = self._config_path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            return self._load_yaml()
        elif suffix == ".json":
            return self._load_json()
        else:
            raise ConfigurationError(
                f"Unsupported configuration file format: {suffix}. "
                "Supported formats: .yaml, .yml, .json"
            )

    def load_config(self) -> ControlPlaneConfig:
        """Load and validate the file into a ControlPlaneConfig.

        Raises:
            ConfigurationError: If the file cannot be parsed or fails validation.
        """
        data = self.load()
        self.validate_structure(data)
        try:
            return ControlPlaneConfig.model_validate(data)
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"]) or None
            raise ConfigurationError(
                f"Invalid configuration: {first['msg']}",
                field=field,
            ) from e

    def _load_yaml(self) -> dict[str, Any]:
        try:
            with self._config_path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
                if data is None:
                    return {}
                if not isinstance(data, dict):
                    raise ConfigurationError("YAML file must contain a dictionary/mapping")
                return data
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML format: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file: {e}") from e

    def _load_json(self) -> dict[str, Any]:
        try:
            with self._config_path.open("r", encoding="utf-8") as f:
                data = json.load(f)
                if not isinstance(data, dict):
                    raise ConfigurationError("JSON file must contain an object")
                return data
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON format: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file: {e}") from e

    def validate_structure(self, config: dict[str, Any]) -> None:
        """Reject unknown top-level sections.

        Raises:
            ConfigurationError: If configuration structure is invalid.
        """
        if not isinstance(config, dict):
            raise ConfigurationError("Configuration must be a dictionary")

        for key in config:
            if key not in self.ALLOWED_SECTIONS:
                raise ConfigurationError(
                    f"Unknown configuration key: '{key}'. "
                    f"Allowed keys: {', '.join(sorted(self.ALLOWED_SECTIONS))}",
                    field=key,
                )


def load_control_plane_config(config_file_path: str | Path | None) -> ControlPlaneConfig:
    """Load configuration from a file, or the built-in defaults when no path is given."""
    if config_file_path is None:
        return ControlPlaneConfig()
    return ConfigurationFileLoader(config_file_path).load_config()
