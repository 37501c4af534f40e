"""Access policy data models for the private API resource policy."""

from __future__ import annotations

import fnmatch
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

INVOKE_ACTION = "execute-api:Invoke"
ANY_PRINCIPAL = "*"
SOURCE_ENDPOINT_KEY = "source_endpoint"


class Effect(str, Enum):
    """Statement effect."""

    Allow = "ALLOW"
    Deny = "DENY"


class Decision(str, Enum):
    """Outcome of a policy evaluation."""

    Allow = "ALLOW"
    Deny = "DENY"


class StringEquals(BaseModel):
    """Holds when the context value equals one of the values.

    A missing context key never satisfies a positive operator.
    """

    operator: Literal["StringEquals"] = "StringEquals"
    key: str = Field(..., min_length=1)
    values: list[str] = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)

    def holds(self, context: dict[str, Any]) -> bool:
        value = context.get(self.key)
        return value is not None and str(value) in self.values


class StringNotEquals(BaseModel):
    """Holds when the context value differs from every value.

    A missing context key always satisfies a negated operator.
    """

    operator: Literal["StringNotEquals"] = "StringNotEquals"
    key: str = Field(..., min_length=1)
    values: list[str] = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)

    def holds(self, context: dict[str, Any]) -> bool:
        value = context.get(self.key)
        return value is None or str(value) not in self.values


Condition = Annotated[StringEquals | StringNotEquals, Field(discriminator="operator")]


class PolicyStatement(BaseModel):
    """One entry of an access policy."""

    sid: str = Field(default="", description="Optional statement identifier")
    effect: Effect
    principals: list[str] = Field(default_factory=lambda: [ANY_PRINCIPAL])
    actions: list[str] = Field(default_factory=lambda: [INVOKE_ACTION])
    resources: list[str] = Field(default_factory=lambda: ["execute-api:/*/*/*"])
    conditions: list[Condition] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    @field_validator("principals", "actions", "resources")
    @classmethod
    def validate_non_empty(cls, v: list[str]) -> list[str]:
        """Statements must name at least one principal, action and resource."""
        if not v:
            raise ValueError("Statement lists cannot be empty")
        return v

    def matches(self, request: AccessRequest) -> bool:
        """Check principal, action and resource (conditions excluded)."""
        principal_ok = ANY_PRINCIPAL in self.principals or (
            request.principal is not None and request.principal in self.principals
        )
        action_ok = any(fnmatch.fnmatchcase(request.action, a) for a in self.actions)
        resource_ok = any(fnmatch.fnmatchcase(request.resource, r) for r in self.resources)
        return principal_ok and action_ok and resource_ok

    def conditions_hold(self, context: dict[str, Any]) -> bool:
        """All conditions must hold; a statement without conditions always holds."""
        return all(condition.holds(context) for condition in self.conditions)


class AccessPolicy(BaseModel):
    """Ordered list of statements evaluated with deny-overrides semantics.

    Example:
        ```python
        policy = AccessPolicy.private_endpoint_only("vpce-0a1b2c3d")
        ```
    """

    statements: list[PolicyStatement] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def private_endpoint_only(
        cls, endpoint_id: str, resource: str = "execute-api:/*/*/*"
    ) -> AccessPolicy:
        """Allow anyone to invoke, deny anything not arriving via endpoint_id."""
        return cls(
            statements=[
                PolicyStatement(
                    sid="AllowInvoke",
                    effect=Effect.Allow,
                    resources=[resource],
                ),
                PolicyStatement(
                    sid="DenyOutsideEndpoint",
                    effect=Effect.Deny,
                    resources=[resource],
                    conditions=[
                        StringNotEquals(key=SOURCE_ENDPOINT_KEY, values=[endpoint_id])
                    ],
                ),
            ]
        )


class AccessRequest(BaseModel):
    """The facts about one inbound request the policy can see."""

    principal: str | None = Field(default=None)
    action: str = Field(default=INVOKE_ACTION)
    resource: str = Field(..., min_length=1)
    source_endpoint_id: str | None = Field(
        default=None,
        description="Id of the entry point the request arrived through, if known",
    )

    model_config = ConfigDict(frozen=True)

    @classmethod
    def for_http(
        cls,
        method: str,
        path: str,
        stage: str,
        source_endpoint_id: str | None,
        principal: str | None = None,
    ) -> AccessRequest:
        """Build the request for an HTTP call on a stage."""
        resource = f"execute-api:/{stage}/{method.upper()}/{path.lstrip('/')}"
        return cls(
            principal=principal,
            resource=resource,
            source_endpoint_id=source_endpoint_id,
        )

    def context(self) -> dict[str, Any]:
        """Condition context; absent keys are omitted, not set to None."""
        context: dict[str, Any] = {}
        if self.source_endpoint_id:
            context[SOURCE_ENDPOINT_KEY] = self.source_endpoint_id
        if self.principal:
            context["principal"] = self.principal
        return context


class PolicyEvaluation(BaseModel):
    """Result of evaluating an access policy against a request."""

    decision: Decision
    reason: str = Field(default="")
    matched_allow: list[str] = Field(default_factory=list)
    matched_deny: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def allowed(self) -> bool:
        return self.decision == Decision.Allow
