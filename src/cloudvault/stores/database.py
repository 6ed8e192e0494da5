"""DatabaseMetadataStore — key-value metadata in a single SQL table."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from cloudvault.fs.exceptions import StorageError
from cloudvault.models.kv import KVEntry

from .types import ListPage

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from cloudvault.models.kv import KVEntryBase

logger = logging.getLogger(__name__)


def _escape_like(prefix: str) -> str:
    return prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class DatabaseMetadataStore:
    """Metadata store over an async SQLAlchemy engine.

    Works with any dialect SQLAlchemy supports; ``sqlite+aiosqlite`` is the
    default deployment.  Each call runs in its own short-lived session, so
    the store is safe to share across concurrent requests.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        kv_model: type[KVEntryBase] | None = None,
    ) -> None:
        self.engine = engine
        self._model: type[KVEntryBase] = kv_model or KVEntry  # type: ignore[assignment]
        self._session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )

    async def open(self) -> None:
        """Create the key-value table if it does not exist."""
        model = self._model
        async with self.engine.begin() as conn:
            await conn.run_sync(
                lambda c: model.__table__.create(c, checkfirst=True)  # type: ignore[attr-defined]
            )

    async def close(self) -> None:
        await self.engine.dispose()

    async def get(self, key: str) -> str | None:
        try:
            async with self._session_factory() as session:
                entry = await session.get(self._model, key)
                return entry.value if entry is not None else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

    async def put(self, key: str, value: str) -> None:
        try:
            async with self._session_factory() as session:
                await session.merge(
                    self._model(key=key, value=value, updated_at=datetime.now(UTC))
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to write {key}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            async with self._session_factory() as session:
                entry = await session.get(self._model, key)
                if entry is not None:
                    await session.delete(entry)
                    await session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e

    async def list(
        self,
        prefix: str = "",
        *,
        limit: int = 1000,
        cursor: str | None = None,
    ) -> ListPage:
        model = self._model
        stmt = select(model.key)
        if prefix:
            stmt = stmt.where(
                model.key.like(_escape_like(prefix) + "%", escape="\\"),  # type: ignore[union-attr]
            )
        if cursor is not None:
            stmt = stmt.where(model.key > cursor)  # type: ignore[arg-type]
        stmt = stmt.order_by(model.key).limit(limit + 1)  # type: ignore[arg-type]

        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                rows = [row[0] for row in result.all()]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list {prefix!r}: {e}") from e

        # LIKE is case-insensitive on some dialects; double-check the prefix
        complete = len(rows) <= limit
        page = rows[:limit]
        keys = [k for k in page if k.startswith(prefix)]
        return ListPage(keys=keys, cursor=None if complete else page[-1], complete=complete)
