"""Store protocols — runtime-checkable interfaces.

CloudVault keeps all state in two places: a flat key-value store for JSON
metadata and a blob store for file content.  Neither has a directory concept;
folders are derived by the registry from key prefixes.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .types import (
        BlobBody,
        BlobData,
        BlobObject,
        ByteRange,
        Conditional,
        ListPage,
        UploadedPart,
    )


@runtime_checkable
class MetadataStore(Protocol):
    """String-keyed store of JSON string values with prefix listing."""

    async def open(self) -> None:
        """Called at startup.  No-op if not needed."""
        ...

    async def close(self) -> None: ...

    async def get(self, key: str) -> str | None: ...

    async def put(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None:
        """Delete *key*.  Deleting a missing key is not an error."""
        ...

    async def list(
        self,
        prefix: str = "",
        *,
        limit: int = 1000,
        cursor: str | None = None,
    ) -> ListPage:
        """Return up to *limit* keys starting with *prefix*, in key order.

        Pass the returned ``cursor`` to fetch the next page until
        ``complete`` is true.
        """
        ...


@runtime_checkable
class BlobStore(Protocol):
    """Object store for file bodies with ranged reads and multipart uploads."""

    async def open(self) -> None: ...

    async def close(self) -> None: ...

    async def put(
        self,
        key: str,
        data: BlobData,
        *,
        content_type: str | None = None,
        content_disposition: str | None = None,
        custom_metadata: dict[str, str] | None = None,
    ) -> BlobObject: ...

    async def get(
        self,
        key: str,
        *,
        range: ByteRange | None = None,
        conditional: Conditional | None = None,
    ) -> BlobObject | BlobBody | None:
        """Fetch a blob.

        Returns ``None`` if missing, a metadata-only ``BlobObject`` when a
        precondition fails, otherwise a ``BlobBody`` with the content.
        """
        ...

    async def head(self, key: str) -> BlobObject | None: ...

    async def delete(self, key: str) -> None: ...

    async def copy(self, src: str, dest: str) -> BlobObject | None:
        """Copy *src* to *dest*; ``None`` when *src* does not exist."""
        ...

    async def create_multipart_upload(
        self,
        key: str,
        *,
        content_type: str | None = None,
        content_disposition: str | None = None,
        custom_metadata: dict[str, str] | None = None,
    ) -> str: ...

    async def upload_part(
        self, key: str, upload_id: str, part_number: int, data: BlobData
    ) -> UploadedPart: ...

    async def complete_multipart_upload(
        self, key: str, upload_id: str, parts: list[UploadedPart]
    ) -> BlobObject: ...

    async def abort_multipart_upload(self, key: str, upload_id: str) -> None: ...


async def iter_keys(store: MetadataStore, prefix: str, page_size: int = 1000) -> AsyncIterator[str]:
    """Yield every key under *prefix*, following cursors until complete."""
    cursor: str | None = None
    while True:
        page = await store.list(prefix, limit=page_size, cursor=cursor)
        for key in page.keys:
            yield key
        if page.complete or page.cursor is None:
            return
        cursor = page.cursor
