"""ReconciliationResult model for target synchronization cycles."""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


class ReconciliationResult(BaseModel):
    """What one reconciliation cycle did to the router's target set."""

    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    reactivated: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(
        default_factory=list,
        description="Addresses ignored because they are outside the boundary",
    )
    error: str | None = Field(default=None)
    completed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(frozen=True)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed or self.reactivated)
