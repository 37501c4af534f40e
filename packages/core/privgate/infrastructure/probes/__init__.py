"""Health probe implementations."""

from privgate.infrastructure.probes.http_prober import HttpHealthProber

__all__ = ["HttpHealthProber"]
