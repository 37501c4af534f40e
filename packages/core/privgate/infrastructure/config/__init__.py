"""Configuration infrastructure module."""

from privgate.infrastructure.config.control_plane_config import (
    ControlPlaneConfig,
    DnsConfig,
    IdentityConfig,
    RouterConfig,
    SyncConfig,
)
from privgate.infrastructure.config.file_loader import (
    ConfigurationError,
    ConfigurationFileLoader,
    load_control_plane_config,
)
from privgate.infrastructure.config.settings import ControlPlaneSettings

__all__ = [
    "ControlPlaneSettings",
    "ControlPlaneConfig",
    "DnsConfig",
    "IdentityConfig",
    "RouterConfig",
    "SyncConfig",
    "ConfigurationFileLoader",
    "ConfigurationError",
    "load_control_plane_config",
]
