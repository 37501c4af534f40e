"""DomainRecord model for the private hosted zone."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class DomainRecord(BaseModel):
    """Maps a domain name to an address, visible only inside the boundary.

    A record either carries static values or aliases a named component
    (the internal router) whose address is looked up on every query.
    """

    name: str = Field(..., min_length=1)
    record_type: str = Field(default="A")
    ttl_seconds: int = Field(
        default=0,
        ge=0,
        description="0 means resolvers must re-query on every resolution",
    )
    values: list[str] = Field(default_factory=list)
    alias: str | None = Field(
        default=None,
        description="Name of the component this record aliases (e.g. 'internal-router')",
    )
    comment: str = Field(default="")

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        """Domain names are case-insensitive; drop the trailing dot."""
        return v.strip().rstrip(".").lower()

    @field_validator("record_type")
    @classmethod
    def validate_record_type(cls, v: str) -> str:
        v = v.strip().upper()
        if v != "A":
            raise ValueError("Only A records are supported in the private zone")
        return v

    @model_validator(mode="after")
    def validate_target(self) -> DomainRecord:
        """Exactly one of values/alias must be set."""
        if bool(self.values) == bool(self.alias):
            raise ValueError("A record needs either static values or an alias, not both")
        return self
