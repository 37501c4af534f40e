"""Gateway error taxonomy shared by every control-plane component."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Categories of control-plane errors."""

    AccessDenied = "access_denied"
    """Request provenance failed the access policy (403)."""

    InvalidIdentity = "invalid_identity"
    """Unknown, missing or disabled API key (403)."""

    Throttled = "throttled"
    """Token bucket empty for the identity (429)."""

    QuotaExceeded = "quota_exceeded"
    """Period quota used up for the current window (429)."""

    NoHealthyTargets = "no_healthy_targets"
    """Router has no eligible target for a new connection."""

    Reconciliation = "reconciliation_error"
    """Transient failure while syncing router targets."""

    NameResolution = "name_resolution_error"
    """Name could not be resolved for the caller."""

    Certificate = "certificate_error"
    """Listener certificate is unusable."""

    UnknownError = "unknown_error"
    """Unknown or unclassified error."""


class GatewayError(Exception):
    """Base error for the private service-access control plane.

    Example:
        ```python
        raise GatewayError(
            category=ErrorCategory.Throttled,
            message="Rate limit exceeded",
            retryable=True,
            retry_after=1,
        )
        ```
    """

    status_code: int = 500

    def __init__(
        self,
        category: ErrorCategory | str,
        message: str,
        retryable: bool = False,
        details: dict[str, Any] | None = None,
        retry_after: int | None = None,
    ) -> None:
        """Initialize GatewayError.

        Args:
            category: Error category (ErrorCategory enum or string).
            message: Human-readable error message.
            retryable: Whether the caller may retry after backing off.
            details: Additional error details.
            retry_after: Suggested wait in seconds before retrying.
        """
        self.category = ErrorCategory(category) if isinstance(category, str) else category
        self.message = message
        self.retryable = retryable
        self.details = details or {}
        self.retry_after = retry_after
        super().__init__(self.message)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(category={self.category.value}, "
            f"message={self.message!r}, retryable={self.retryable})"
        )

    def __str__(self) -> str:
        return self.message


class AccessDeniedError(GatewayError):
    """Raised when the access policy denies a request."""

    status_code = 403

    def __init__(self, message: str = "Access denied", **kwargs: Any) -> None:
        super().__init__(ErrorCategory.AccessDenied, message, **kwargs)


class InvalidIdentityError(GatewayError):
    """Raised for unknown or disabled API keys."""

    status_code = 403

    def __init__(self, message: str = "Forbidden", **kwargs: Any) -> None:
        super().__init__(ErrorCategory.InvalidIdentity, message, **kwargs)


class ThrottledError(GatewayError):
    """Raised when an identity has no token left in its bucket."""

    status_code = 429

    def __init__(self, message: str = "Too Many Requests", **kwargs: Any) -> None:
        kwargs.setdefault("retryable", True)
        super().__init__(ErrorCategory.Throttled, message, **kwargs)


class QuotaExceededError(GatewayError):
    """Raised when an identity exhausted its period quota."""

    status_code = 429

    def __init__(self, message: str = "Limit Exceeded", **kwargs: Any) -> None:
        kwargs.setdefault("retryable", True)
        super().__init__(ErrorCategory.QuotaExceeded, message, **kwargs)


class NoHealthyTargetsError(GatewayError):
    """Raised when the router cannot place a new connection."""

    status_code = 503

    def __init__(self, message: str = "No healthy targets available", **kwargs: Any) -> None:
        super().__init__(ErrorCategory.NoHealthyTargets, message, **kwargs)


class AddressSourceError(GatewayError):
    """Raised when the entry point's current addresses cannot be fetched."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("retryable", True)
        super().__init__(ErrorCategory.Reconciliation, message, **kwargs)


class NameResolutionError(GatewayError):
    """Raised when a domain name cannot be resolved for a resolver."""

    status_code = 502

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(ErrorCategory.NameResolution, message, **kwargs)


class CertificateError(GatewayError):
    """Raised when the listener certificate cannot be used."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(ErrorCategory.Certificate, message, **kwargs)
