"""Listener certificate loading and validation."""

import ssl
from datetime import UTC, datetime
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import ExtensionOID, NameOID
from pydantic import BaseModel, ConfigDict, Field

from privgate.domain.models.system_error import CertificateError


class CertificateInfo(BaseModel):
    """Summary of a validated listener certificate."""

    subject: str
    dns_names: list[str] = Field(default_factory=list)
    not_before: datetime
    not_after: datetime
    fingerprint_sha256: str

    model_config = ConfigDict(frozen=True)


def load_certificate(data: bytes) -> x509.Certificate:
    """Parse a PEM (or DER) certificate.

    Raises:
        CertificateError: If the data is not a certificate.
    """
    try:
        if b"-----BEGIN" in data:
            return x509.load_pem_x509_certificate(data)
        return x509.load_der_x509_certificate(data)
    except ValueError as e:
        raise CertificateError(f"Certificate could not be parsed: {e}") from e


def certificate_dns_names(certificate: x509.Certificate) -> list[str]:
    """DNS names from the SAN extension, falling back to the subject CN."""
    try:
        san = certificate.extensions.get_extension_for_oid(
            ExtensionOID.SUBJECT_ALTERNATIVE_NAME
        )
        names = san.value.get_values_for_type(x509.DNSName)
    except x509.ExtensionNotFound:
        names = [
            str(attribute.value)
            for attribute in certificate.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        ]
    return [name.lower().rstrip(".") for name in names]


def name_matches(pattern: str, domain: str) -> bool:
    """Match a hostname against a certificate name (single-label wildcards only)."""
    pattern = pattern.lower().rstrip(".")
    domain = domain.lower().rstrip(".")
    if pattern == domain:
        return True
    if pattern.startswith("*."):
        head, _, rest = domain.partition(".")
        return bool(head) and rest == pattern[2:]
    return False


def validate_certificate(
    certificate: x509.Certificate,
    domain: str,
    now: datetime | None = None,
) -> CertificateInfo:
    """Check that a certificate is currently valid and covers domain.

    Args:
        certificate: Parsed certificate.
        domain: Name callers use to reach the router.
        now: Reference time; defaults to the current UTC time.

    Returns:
        CertificateInfo for logging.

    Raises:
        CertificateError: If the certificate is expired, not yet valid, or
            does not name the domain.
    """
    now = now or datetime.now(UTC)
    not_before = certificate.not_valid_before_utc
    not_after = certificate.not_valid_after_utc
    if now < not_before:
        raise CertificateError(
            f"Certificate is not valid before {not_before.isoformat()}",
            details={"not_before": not_before.isoformat()},
        )
    if now > not_after:
        raise CertificateError(
            f"Certificate expired at {not_after.isoformat()}",
            details={"not_after": not_after.isoformat()},
        )

    dns_names = certificate_dns_names(certificate)
    if not any(name_matches(name, domain) for name in dns_names):
        raise CertificateError(
            f"Certificate does not cover {domain}",
            details={"dns_names": dns_names},
        )

    return CertificateInfo(
        subject=certificate.subject.rfc4514_string(),
        dns_names=dns_names,
        not_before=not_before,
        not_after=not_after,
        fingerprint_sha256=certificate.fingerprint(hashes.SHA256()).hex(),
    )


def create_server_ssl_context(
    cert_file: str | Path,
    key_file: str | Path,
    domain: str,
    now: datetime | None = None,
) -> tuple[ssl.SSLContext, CertificateInfo]:
    """Validate the listener certificate and build a TLS server context.

    Raises:
        CertificateError: If the files cannot be read, the certificate is
            invalid for domain, or the key does not match.
    """
    try:
        cert_data = Path(cert_file).read_bytes()
    except OSError as e:
        raise CertificateError(f"Cannot read certificate file {cert_file}: {e}") from e

    info = validate_certificate(load_certificate(cert_data), domain, now=now)

    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    try:
        context.load_cert_chain(certfile=str(cert_file), keyfile=str(key_file))
    except (OSError, ssl.SSLError) as e:
        raise CertificateError(f"Cannot load certificate chain: {e}") from e
    return context, info
