"""LocalDiskBlobStore — blobs as files under a rooted directory."""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import json
import logging
import os
import shutil
import tempfile
import uuid
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from pathlib import Path

from cloudvault.fs.exceptions import InvalidPathError, NotFoundError, StorageError
from cloudvault.fs.utils import validate_blob_key

from .types import (
    BlobBody,
    BlobData,
    BlobObject,
    ByteRange,
    Conditional,
    UploadedPart,
    iter_data,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class LocalDiskBlobStore:
    """Blob store on the local filesystem.

    Object bodies are addressed by the SHA-256 of their key, so keys such as
    ``a`` and ``a/b`` can coexist without file/directory clashes.  Each body
    has a JSON sidecar holding the key and HTTP metadata.  Multipart parts are
    staged under ``.multipart/<upload_id>/`` until completion.

    Security: ``_resolve()`` ensures every computed path stays within
    ``root``, and keys with ``..`` segments are rejected before hashing.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()
        self._objects = self.root / "objects"
        self._multipart = self.root / ".multipart"

    async def open(self) -> None:
        def _mkdirs() -> None:
            self._objects.mkdir(parents=True, exist_ok=True)
            self._multipart.mkdir(parents=True, exist_ok=True)

        await asyncio.to_thread(_mkdirs)

    async def close(self) -> None:
        pass

    # =========================================================================
    # Path Resolution & Security
    # =========================================================================

    def _resolve(self, *parts: str) -> Path:
        candidate = self.root.joinpath(*parts).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError:
            raise InvalidPathError(
                f"Path traversal detected: {'/'.join(parts)} resolves outside blob root"
            ) from None
        return candidate

    def _paths(self, key: str) -> tuple[Path, Path]:
        validate_blob_key(key)
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        body = self._resolve("objects", digest[:2], digest)
        return body, body.with_suffix(".json")

    def _upload_dir(self, upload_id: str) -> Path:
        if not upload_id or not all(c in "0123456789abcdef" for c in upload_id):
            raise NotFoundError(f"Unknown multipart upload: {upload_id}")
        return self._resolve(".multipart", upload_id)

    # =========================================================================
    # Sidecar metadata
    # =========================================================================

    @staticmethod
    def _dump_meta(obj: BlobObject) -> str:
        return json.dumps(
            {
                "key": obj.key,
                "size": obj.size,
                "etag": obj.etag,
                "uploaded": obj.uploaded.isoformat(),
                "content_type": obj.content_type,
                "content_disposition": obj.content_disposition,
                "custom_metadata": obj.custom_metadata,
            }
        )

    @staticmethod
    def _load_meta(raw: str) -> BlobObject:
        data = json.loads(raw)
        return BlobObject(
            key=data["key"],
            size=data["size"],
            etag=data["etag"],
            uploaded=datetime.fromisoformat(data["uploaded"]),
            content_type=data.get("content_type"),
            content_disposition=data.get("content_disposition"),
            custom_metadata=data.get("custom_metadata") or {},
        )

    async def _read_meta(self, key: str) -> BlobObject | None:
        body, meta = self._paths(key)

        def _read() -> str | None:
            if not body.exists():
                return None
            try:
                return meta.read_text("utf-8")
            except FileNotFoundError:
                return None

        raw = await asyncio.to_thread(_read)
        if raw is None:
            return None
        try:
            return self._load_meta(raw)
        except (ValueError, KeyError) as e:
            raise StorageError(f"Corrupt blob metadata for {key}: {e}") from e

    # =========================================================================
    # Writes
    # =========================================================================

    @staticmethod
    def _atomic_write_text(path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            Path(tmp_path).replace(path)
        except Exception:
            with contextlib.suppress(OSError):
                Path(tmp_path).unlink()
            raise

    async def _write_stream(self, target: Path, data: BlobData) -> tuple[int, str]:
        """Stream *data* into *target* atomically; return (size, md5 hex)."""
        await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)
        fd, tmp_path = await asyncio.to_thread(
            tempfile.mkstemp, dir=str(target.parent), suffix=".tmp"
        )
        digest = hashlib.md5()
        size = 0
        f = os.fdopen(fd, "wb")
        try:
            async for chunk in iter_data(data):
                digest.update(chunk)
                size += len(chunk)
                await asyncio.to_thread(f.write, chunk)
            await asyncio.to_thread(f.close)
            await asyncio.to_thread(Path(tmp_path).replace, target)
        except Exception:
            f.close()
            with contextlib.suppress(OSError):
                Path(tmp_path).unlink()
            raise
        return size, digest.hexdigest()

    async def put(
        self,
        key: str,
        data: BlobData,
        *,
        content_type: str | None = None,
        content_disposition: str | None = None,
        custom_metadata: dict[str, str] | None = None,
    ) -> BlobObject:
        body, meta = self._paths(key)
        try:
            size, etag = await self._write_stream(body, data)
            obj = BlobObject(
                key=key,
                size=size,
                etag=etag,
                uploaded=datetime.now(UTC),
                content_type=content_type,
                content_disposition=content_disposition,
                custom_metadata=dict(custom_metadata or {}),
            )
            await asyncio.to_thread(self._atomic_write_text, meta, self._dump_meta(obj))
        except OSError as e:
            raise StorageError(f"Failed to write blob {key}: {e}") from e
        logger.debug("disk blob put %s (%d bytes)", key, size)
        return obj

    # =========================================================================
    # Reads
    # =========================================================================

    async def _stream(self, path: Path, offset: int, length: int) -> AsyncIterator[bytes]:
        f = await asyncio.to_thread(path.open, "rb")
        try:
            await asyncio.to_thread(f.seek, offset)
            remaining = length
            while remaining > 0:
                chunk = await asyncio.to_thread(f.read, min(CHUNK_SIZE, remaining))
                if not chunk:
                    break
                remaining -= len(chunk)
                yield chunk
        finally:
            await asyncio.to_thread(f.close)

    async def get(
        self,
        key: str,
        *,
        range: ByteRange | None = None,
        conditional: Conditional | None = None,
    ) -> BlobObject | BlobBody | None:
        obj = await self._read_meta(key)
        if obj is None:
            return None
        if conditional is not None and conditional.evaluate(obj.etag, obj.uploaded):
            return obj
        body, _ = self._paths(key)
        if range is not None:
            offset = min(range.offset, obj.size)
            length = max(0, min(range.length, obj.size - offset))
        else:
            offset, length = 0, obj.size
        return BlobBody(**vars(obj), stream=self._stream(body, offset, length), range=range)

    async def head(self, key: str) -> BlobObject | None:
        return await self._read_meta(key)

    async def delete(self, key: str) -> None:
        body, meta = self._paths(key)

        def _delete() -> None:
            body.unlink(missing_ok=True)
            meta.unlink(missing_ok=True)

        await asyncio.to_thread(_delete)

    async def copy(self, src: str, dest: str) -> BlobObject | None:
        obj = await self._read_meta(src)
        if obj is None:
            return None
        src_body, _ = self._paths(src)
        dest_body, dest_meta = self._paths(dest)
        new = BlobObject(
            key=dest,
            size=obj.size,
            etag=obj.etag,
            uploaded=datetime.now(UTC),
            content_type=obj.content_type,
            content_disposition=obj.content_disposition,
            custom_metadata=dict(obj.custom_metadata),
        )

        def _copy() -> None:
            dest_body.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(str(src_body), str(dest_body))
            self._atomic_write_text(dest_meta, self._dump_meta(new))

        try:
            await asyncio.to_thread(_copy)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to copy blob {src} -> {dest}: {e}") from e
        return new

    # =========================================================================
    # Multipart
    # =========================================================================

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
        staging = self._upload_dir(upload_id)
        manifest = json.dumps(
            {
                "key": key,
                "content_type": content_type,
                "content_disposition": content_disposition,
                "custom_metadata": custom_metadata or {},
            }
        )
        await asyncio.to_thread(self._atomic_write_text, staging / "upload.json", manifest)
        return upload_id

    async def _manifest(self, key: str, upload_id: str) -> dict:
        staging = self._upload_dir(upload_id)
        try:
            raw = await asyncio.to_thread((staging / "upload.json").read_text, "utf-8")
        except FileNotFoundError:
            raise NotFoundError(f"Unknown multipart upload: {upload_id}") from None
        manifest = json.loads(raw)
        if manifest.get("key") != key:
            raise NotFoundError(f"Unknown multipart upload: {upload_id}")
        return manifest

    async def upload_part(
        self, key: str, upload_id: str, part_number: int, data: BlobData
    ) -> UploadedPart:
        await self._manifest(key, upload_id)
        part_path = self._upload_dir(upload_id) / f"part-{part_number:05d}"
        _, etag = await self._write_stream(part_path, data)
        await asyncio.to_thread(
            self._atomic_write_text, part_path.with_suffix(".md5"), etag
        )
        return UploadedPart(part_number=part_number, etag=etag)

    async def complete_multipart_upload(
        self, key: str, upload_id: str, parts: list[UploadedPart]
    ) -> BlobObject:
        manifest = await self._manifest(key, upload_id)
        staging = self._upload_dir(upload_id)
        ordered = sorted(parts, key=lambda p: p.part_number)

        def _verify() -> list[Path]:
            paths = []
            for part in ordered:
                path = staging / f"part-{part.part_number:05d}"
                etag_path = path.with_suffix(".md5")
                if not path.exists() or not etag_path.exists():
                    raise NotFoundError(f"Part {part.part_number} missing")
                if etag_path.read_text("utf-8") != part.etag.strip('"'):
                    raise NotFoundError(f"Part {part.part_number} mismatched")
                paths.append(path)
            return paths

        part_paths = await asyncio.to_thread(_verify)

        async def _concat() -> AsyncIterator[bytes]:
            for path in part_paths:
                size = await asyncio.to_thread(lambda p=path: p.stat().st_size)
                async for chunk in self._stream(path, 0, size):
                    yield chunk

        obj = await self.put(
            key,
            _concat(),
            content_type=manifest.get("content_type"),
            content_disposition=manifest.get("content_disposition"),
            custom_metadata=manifest.get("custom_metadata"),
        )
        await asyncio.to_thread(shutil.rmtree, staging, True)
        return obj

    async def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        await self._manifest(key, upload_id)
        await asyncio.to_thread(shutil.rmtree, self._upload_dir(upload_id), True)
