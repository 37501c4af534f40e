"""AuthorizationResult model for the identity and quota gate."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from privgate.domain.models.system_error import (
    GatewayError,
    InvalidIdentityError,
    QuotaExceededError,
    ThrottledError,
)


class RejectionReason(str, Enum):
    """Why the gate rejected a request."""

    InvalidKey = "invalid-key"
    Throttled = "throttled"
    QuotaExceeded = "quota-exceeded"


class AuthorizationResult(BaseModel):
    """Outcome of ``authorize()``: OK, or REJECTED with a reason."""

    ok: bool = Field(...)
    reason: RejectionReason | None = Field(default=None)
    identity_id: str | None = Field(default=None)
    usage_plan_id: str | None = Field(default=None)
    retry_after: int | None = Field(
        default=None,
        description="Seconds until the caller may retry, when known",
        ge=0,
    )
    remaining_quota: int | None = Field(default=None, ge=0)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def allowed(
        cls,
        identity_id: str,
        usage_plan_id: str | None,
        remaining_quota: int | None = None,
    ) -> AuthorizationResult:
        return cls(
            ok=True,
            identity_id=identity_id,
            usage_plan_id=usage_plan_id,
            remaining_quota=remaining_quota,
        )

    @classmethod
    def rejected(
        cls,
        reason: RejectionReason,
        identity_id: str | None = None,
        usage_plan_id: str | None = None,
        retry_after: int | None = None,
    ) -> AuthorizationResult:
        return cls(
            ok=False,
            reason=reason,
            identity_id=identity_id,
            usage_plan_id=usage_plan_id,
            retry_after=retry_after,
        )

    def to_error(self) -> GatewayError | None:
        """Map a rejection onto the error taxonomy (None when OK)."""
        if self.ok:
            return None
        if self.reason == RejectionReason.Throttled:
            return ThrottledError(retry_after=self.retry_after)
        if self.reason == RejectionReason.QuotaExceeded:
            return QuotaExceededError(retry_after=self.retry_after)
        return InvalidIdentityError()
