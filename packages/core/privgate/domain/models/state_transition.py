"""StateTransition data model for the audit trail."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StateTransition(BaseModel):
    """Records a state change of a target or identity.

    Target health changes (initial/healthy/unhealthy/draining) and identity
    enable/disable operations are both recorded so the control plane can be
    audited after the fact.
    """

    entity_type: str = Field(
        ...,
        description="Type of entity ('Target' or 'Identity')",
        min_length=1,
    )
    entity_id: str = Field(
        ...,
        description="Entity identifier (target 'address:port' or identity id)",
        min_length=1,
    )
    from_state: str = Field(..., description="Previous state value")
    to_state: str = Field(..., description="New state value")
    transition_timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Timestamp when transition occurred",
    )
    trigger: str = Field(
        ...,
        description="What caused the transition (health_check, reconciliation, manual)",
        min_length=1,
    )
    context: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(
        frozen=True,  # Immutable audit trail
        validate_assignment=True,
    )
