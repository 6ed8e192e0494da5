"""In-memory store adapters, used by tests and ``memory`` backends."""

from __future__ import annotations

import bisect
import hashlib
import logging
import uuid
from collections.abc import AsyncIterator
from dataclasses import replace
from datetime import UTC, datetime

from cloudvault.fs.exceptions import NotFoundError
from cloudvault.fs.utils import validate_blob_key

from .types import (
    BlobBody,
    BlobData,
    BlobObject,
    ByteRange,
    Conditional,
    ListPage,
    UploadedPart,
    iter_data,
)

logger = logging.getLogger(__name__)


class MemoryMetadataStore:
    """Dict-backed metadata store with lexicographic cursors.

    The cursor is the last key of the previous page; the next page starts
    strictly after it.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._keys: list[str] = []

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def put(self, key: str, value: str) -> None:
        if key not in self._data:
            bisect.insort(self._keys, key)
        self._data[key] = value

    async def delete(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            idx = bisect.bisect_left(self._keys, key)
            del self._keys[idx]

    async def list(
        self,
        prefix: str = "",
        *,
        limit: int = 1000,
        cursor: str | None = None,
    ) -> ListPage:
        if cursor is not None:
            start = bisect.bisect_right(self._keys, cursor)
        else:
            start = bisect.bisect_left(self._keys, prefix)

        keys: list[str] = []
        idx = start
        while idx < len(self._keys) and len(keys) < limit:
            key = self._keys[idx]
            if not key.startswith(prefix):
                break
            keys.append(key)
            idx += 1

        complete = idx >= len(self._keys) or not self._keys[idx].startswith(prefix)
        return ListPage(keys=keys, cursor=None if complete else keys[-1], complete=complete)


def _make_object(key: str, body: bytes, **meta: object) -> BlobObject:
    return BlobObject(
        key=key,
        size=len(body),
        etag=hashlib.md5(body).hexdigest(),
        uploaded=datetime.now(UTC),
        content_type=meta.get("content_type"),  # type: ignore[arg-type]
        content_disposition=meta.get("content_disposition"),  # type: ignore[arg-type]
        custom_metadata=dict(meta.get("custom_metadata") or {}),  # type: ignore[call-overload]
    )


async def _single_chunk(body: bytes) -> AsyncIterator[bytes]:
    yield body


class MemoryBlobStore:
    """Blob store holding every object in a dict."""

    def __init__(self) -> None:
        self._objects: dict[str, tuple[BlobObject, bytes]] = {}
        self._uploads: dict[str, dict] = {}

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def _collect(self, data: BlobData) -> bytes:
        return b"".join([chunk async for chunk in iter_data(data)])

    async def put(
        self,
        key: str,
        data: BlobData,
        *,
        content_type: str | None = None,
        content_disposition: str | None = None,
        custom_metadata: dict[str, str] | None = None,
    ) -> BlobObject:
        validate_blob_key(key)
        body = await self._collect(data)
        obj = _make_object(
            key,
            body,
            content_type=content_type,
            content_disposition=content_disposition,
            custom_metadata=custom_metadata,
        )
        self._objects[key] = (obj, body)
        logger.debug("memory blob put %s (%d bytes)", key, obj.size)
        return replace(obj)

    async def get(
        self,
        key: str,
        *,
        range: ByteRange | None = None,
        conditional: Conditional | None = None,
    ) -> BlobObject | BlobBody | None:
        validate_blob_key(key)
        entry = self._objects.get(key)
        if entry is None:
            return None
        obj, body = entry
        if conditional is not None and conditional.evaluate(obj.etag, obj.uploaded):
            return replace(obj)
        if range is not None:
            body = body[range.offset : range.offset + range.length]
        return BlobBody(**vars(obj), stream=_single_chunk(body), range=range)

    async def head(self, key: str) -> BlobObject | None:
        validate_blob_key(key)
        entry = self._objects.get(key)
        return replace(entry[0]) if entry else None

    async def delete(self, key: str) -> None:
        validate_blob_key(key)
        self._objects.pop(key, None)

    async def copy(self, src: str, dest: str) -> BlobObject | None:
        validate_blob_key(src)
        validate_blob_key(dest)
        entry = self._objects.get(src)
        if entry is None:
            return None
        obj, body = entry
        new = replace(obj, key=dest, uploaded=datetime.now(UTC), custom_metadata=dict(obj.custom_metadata))
        self._objects[dest] = (new, body)
        return replace(new)

    # ------------------------------------------------------------------
    # Multipart
    # ------------------------------------------------------------------

    async def create_multipart_upload(
        self,
        key: str,
        *,
        content_type: str | None = None,
        content_disposition: str | None = None,
        custom_metadata: dict[str, str] | None = None,
    ) -> str:
        validate_blob_key(key)
        upload_id = uuid.uuid4().hex
        self._uploads[upload_id] = {
            "key": key,
            "parts": {},
            "meta": {
                "content_type": content_type,
                "content_disposition": content_disposition,
                "custom_metadata": custom_metadata,
            },
        }
        return upload_id

    def _upload(self, key: str, upload_id: str) -> dict:
        upload = self._uploads.get(upload_id)
        if upload is None or upload["key"] != key:
            raise NotFoundError(f"Unknown multipart upload: {upload_id}")
        return upload

    async def upload_part(
        self, key: str, upload_id: str, part_number: int, data: BlobData
    ) -> UploadedPart:
        upload = self._upload(key, upload_id)
        body = await self._collect(data)
        etag = hashlib.md5(body).hexdigest()
        upload["parts"][part_number] = (etag, body)
        return UploadedPart(part_number=part_number, etag=etag)

    async def complete_multipart_upload(
        self, key: str, upload_id: str, parts: list[UploadedPart]
    ) -> BlobObject:
        upload = self._upload(key, upload_id)
        chunks = []
        for part in sorted(parts, key=lambda p: p.part_number):
            stored = upload["parts"].get(part.part_number)
            if stored is None or stored[0] != part.etag.strip('"'):
                raise NotFoundError(f"Part {part.part_number} missing or mismatched")
            chunks.append(stored[1])
        del self._uploads[upload_id]
        return await self.put(key, b"".join(chunks), **upload["meta"])

    async def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        self._upload(key, upload_id)
        del self._uploads[upload_id]
