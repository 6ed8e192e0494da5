"""FolderShareLink and Session models."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


def _now() -> datetime:
    return datetime.now(UTC)


def _expired(expires_at: datetime | None, now: datetime | None) -> bool:
    if expires_at is None:
        return False
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    return expires_at < (now or _now())


class FolderShareLink(SQLModel):
    """Token granting browse access to one folder subtree.

    Stored at ``foldersharelink:{token}``; the reverse pointer
    ``foldersharelink:meta:{folder}`` holds the live token for the folder.
    """

    token: str
    folder: str
    created_at: datetime = Field(default_factory=_now)
    expires_at: datetime | None = Field(default=None)
    password_hash: str | None = Field(default=None)

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    def is_expired(self, now: datetime | None = None) -> bool:
        return _expired(self.expires_at, now)


class Session(SQLModel):
    """Login session, keyed ``session:{id}``."""

    id: str
    created_at: datetime = Field(default_factory=_now)
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        return _expired(self.expires_at, now)
