"""FileRecord — JSON value stored at ``file:{id}`` in the metadata store.

These are non-table SQLModel classes: they validate on construction and
serialize with ``model_dump_json`` / ``model_validate_json``.  Only the
key-value entry itself (see ``models/kv.py``) is a concrete table.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlmodel import Field, SQLModel

from cloudvault.fs.utils import ROOT_FOLDER, make_blob_key


def _now() -> datetime:
    return datetime.now(UTC)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class FileRecord(SQLModel):
    """Metadata for one stored file, keyed ``file:{id}``."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    key: str
    name: str
    size: int = Field(default=0, ge=0)
    mime_type: str = Field(default="application/octet-stream")
    folder: str = Field(default=ROOT_FOLDER)
    uploaded_at: datetime = Field(default_factory=_now)
    share_token: str | None = Field(default=None)
    share_password: str | None = Field(default=None)
    share_expires_at: datetime | None = Field(default=None)
    downloads: int = Field(default=0, ge=0)

    @property
    def path(self) -> str:
        """Virtual path of the file, identical to its expected blob key."""
        return make_blob_key(self.folder, self.name)

    @property
    def etag(self) -> str:
        """Strong validator used on the WebDAV surface."""
        return f'"{self.id}"'

    def share_expired(self, now: datetime | None = None) -> bool:
        if self.share_expires_at is None:
            return False
        return _aware(self.share_expires_at) < (now or _now())

    def clear_share(self) -> None:
        self.share_token = None
        self.share_password = None
        self.share_expires_at = None

