"""Identity (API key) data model."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator


class Identity(BaseModel):
    """A caller identity backed by an API key.

    Identities are created once and are long-lived. Disabling an identity
    keeps the record (and its usage plan binding) but rejects its key.
    The key value is a secret and never appears in repr or logs.
    """

    id: str = Field(
        ...,
        description="Stable identifier (not the key value itself)",
        min_length=1,
    )
    name: str = Field(..., min_length=1, description="Human-readable key name")
    value: SecretStr = Field(..., description="The API key value sent in x-api-key")
    customer_id: str | None = Field(default=None)
    description: str = Field(default="")
    enabled: bool = Field(default=True)
    usage_plan_id: str | None = Field(
        default=None,
        description="Usage plan this identity is bound to",
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(
        frozen=False,
        validate_assignment=True,
        str_strip_whitespace=True,
    )

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate identity ID format."""
        if not v or not v.strip():
            raise ValueError("Identity ID cannot be empty")
        if len(v) > 255:
            raise ValueError("Identity ID must be 255 characters or less")
        return v.strip()

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: SecretStr) -> SecretStr:
        """API keys must be at least 20 characters, like the upstream gateway enforces."""
        if len(v.get_secret_value().strip()) < 20:
            raise ValueError("API key value must be at least 20 characters")
        return v

    def __repr__(self) -> str:
        """String representation that never exposes the key value."""
        return (
            f"Identity(id={self.id!r}, name={self.name!r}, "
            f"enabled={self.enabled}, usage_plan_id={self.usage_plan_id!r})"
        )
