"""privgate - private service-access control plane."""

from privgate.control_plane import ControlPlane
from privgate.infrastructure.config.control_plane_config import ControlPlaneConfig
from privgate.infrastructure.config.settings import ControlPlaneSettings

__version__ = "0.1.0"

__all__ = ["ControlPlane", "ControlPlaneConfig", "ControlPlaneSettings", "__version__"]
