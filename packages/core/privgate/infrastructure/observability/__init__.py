"""Observability implementations."""

from privgate.infrastructure.observability.logger import (
    DefaultObservabilityManager,
    configure_logging,
    sanitize_for_logging,
)

__all__ = ["DefaultObservabilityManager", "configure_logging", "sanitize_for_logging"]
