"""Network listeners and TLS helpers for the internal router."""

from privgate.infrastructure.network.certificates import (
    CertificateInfo,
    create_server_ssl_context,
    load_certificate,
    validate_certificate,
)
from privgate.infrastructure.network.forwarder import ConnectionForwarder

__all__ = [
    "CertificateInfo",
    "ConnectionForwarder",
    "create_server_ssl_context",
    "load_certificate",
    "validate_certificate",
]
