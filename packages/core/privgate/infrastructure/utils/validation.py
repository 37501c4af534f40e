"""Input validation utilities for identities, names and addresses."""

import ipaddress
import re
from typing import Any


class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize ValidationError.

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
            return f"Validation error in field '{self.field}': {self.message}"
        return self.message


# Injection attack patterns to detect
INJECTION_PATTERNS = [
    # Command injection patterns
    re.compile(r"[;&|`$(){}[\]<>]"),
    # Script injection patterns
    re.compile(r"(?i)(<script|javascript:|onerror=|onload=)"),
    # Path traversal patterns
    re.compile(r"(?i)(\.\./|\.\.\\|%2e%2e%2f)"),
]

_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.-]+$")
_LABEL_PATTERN = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")


def detect_injection_attempt(value: str) -> bool:
    """Detect potential injection attacks in a string value.

    Args:
        value: String value to check for injection patterns.

    Returns:
        True if injection pattern detected, False otherwise.
    """
    if not isinstance(value, str):
        return False

    return any(pattern.search(value) for pattern in INJECTION_PATTERNS)


def validate_key_value(value: str) -> None:
    """Validate an API key value.

    Args:
        value: Key value to validate.

    Raises:
        ValidationError: If validation fails.
    """
    if not value or not value.strip():
        raise ValidationError("Key value cannot be empty", field="value")

    value = value.strip()

    if len(value) < 20:
        raise ValidationError("Key value must be at least 20 characters long", field="value")
    if len(value) > 128:
        raise ValidationError("Key value must be 128 characters or less", field="value")

    if any(ord(c) < 33 or ord(c) > 126 for c in value):
        raise ValidationError(
            "Key value must contain printable ASCII characters only",
            field="value",
        )

    if detect_injection_attempt(value):
        raise ValidationError(
            "Key value contains potentially malicious content",
            field="value",
        )


def validate_name(name: str, field: str = "name") -> None:
    """Validate a resource name (identity, usage plan, customer id).

    Raises:
        ValidationError: If validation fails.
    """
    if not name or not name.strip():
        raise ValidationError("Name cannot be empty", field=field)
    if len(name) > 128:
        raise ValidationError("Name must be 128 characters or less", field=field)
    if not _NAME_PATTERN.match(name.strip()):
        raise ValidationError(
            "Name must contain only letters, numbers, dots, underscores, and hyphens",
            field=field,
        )


def validate_domain_name(domain_name: str) -> str:
    """Validate a DNS name and return its normalized form.

    Raises:
        ValidationError: If the name is not a valid hostname.
    """
    if not domain_name or not domain_name.strip():
        raise ValidationError("Domain name cannot be empty", field="domain_name")

    normalized = domain_name.strip().rstrip(".").lower()
    if len(normalized) > 253:
        raise ValidationError("Domain name must be 253 characters or less", field="domain_name")

    labels = normalized.split(".")
    if not all(_LABEL_PATTERN.match(label) for label in labels):
        raise ValidationError(f"Invalid domain name: {domain_name!r}", field="domain_name")
    return normalized


def validate_ip_address(address: str, field: str = "address") -> str:
    """Validate an IP literal and return its canonical form.

    Raises:
        ValidationError: If address is not an IP literal.
    """
    try:
        return str(ipaddress.ip_address(address.strip()))
    except (ValueError, AttributeError) as e:
        raise ValidationError(f"Invalid IP address: {address!r}", field=field) from e


def validate_metadata(metadata: dict[str, Any] | None) -> None:
    """Validate metadata dictionary structure and content.

    Args:
        metadata: Metadata dictionary to validate.

    Raises:
        ValidationError: If validation fails.
    """
    if metadata is None:
        return  # None is allowed

    if not isinstance(metadata, dict):
        raise ValidationError("Metadata must be a dictionary", field="metadata")

    if len(metadata) > 50:
        raise ValidationError(
            "Metadata cannot contain more than 50 keys",
            field="metadata",
        )

    for key, value in metadata.items():
        if not isinstance(key, str) or not re.match(r"^[a-zA-Z0-9_-]{1,100}$", key):
            raise ValidationError(
                "Metadata keys must be 1-100 letters, numbers, underscores, or hyphens",
                field=f"metadata.{key}",
            )

        if value is None or isinstance(value, int | float | bool):
            continue
        if isinstance(value, str):
            if len(value) > 1000:
                raise ValidationError(
                    "Metadata string values must be 1000 characters or less",
                    field=f"metadata.{key}",
                )
            if detect_injection_attempt(value):
                raise ValidationError(
                    "Metadata value contains potentially malicious content",
                    field=f"metadata.{key}",
                )
        else:
            raise ValidationError(
                "Metadata values must be primitive types",
                field=f"metadata.{key}",
            )
