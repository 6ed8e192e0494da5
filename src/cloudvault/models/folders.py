"""FolderRecord model — explicit folder markers."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


class FolderRecord(SQLModel):
    """Explicit folder marker, keyed ``folder:{path}``.

    ``name`` holds the full folder path, not just the last segment.
    """

    name: str
    created_at: datetime | None = Field(default_factory=lambda: datetime.now(UTC))
