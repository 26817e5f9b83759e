"""Audit publication models."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class AuditResult(BaseModel):
    """Delivery result for one published fact."""

    success: bool
    kind: str
    size_bytes: int
    truncated: bool = False
    sent_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    error: str | None = None

    def __str__(self) -> str:
        if self.success:
            return f"Published {self.kind} ({self.size_bytes} bytes)"
        return f"Failed to publish {self.kind}: {self.error}"
