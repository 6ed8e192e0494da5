"""KVEntry model — the single table behind ``DatabaseMetadataStore``.

Provides ``KVEntryBase`` (non-table) and ``KVEntry`` (concrete table).
Subclass ``KVEntryBase`` with ``table=True`` and a custom ``__tablename__``
to use a different table name per deployment.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, Text
from sqlmodel import Field, SQLModel


class KVEntryBase(SQLModel):
    """Base fields for a key-value entry. Subclass with ``table=True`` for a concrete table."""

    key: str = Field(primary_key=True, max_length=1024)
    value: str = Field(sa_type=Text)  # type: ignore[call-overload]
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )


class KVEntry(KVEntryBase, table=True):
    """Default key-value table — ``cloudvault_kv``."""

    __tablename__ = "cloudvault_kv"
