"""FileRegistry — maps ``(folder, name)`` to FileRecords and derives the folder tree.

The blob store has no directory concept.  A folder exists when it has an
explicit ``folder:{path}`` record, or when any file or folder record lies
beneath it (an implicit folder).  Every ancestor of an existing folder is
itself a folder.

Cascading operations (rename, delete, move) are sequential and best-effort:
there are no transactions, so a failure midway leaves earlier steps applied.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pydantic import ValidationError

from cloudvault.models.files import FileRecord
from cloudvault.models.folders import FolderRecord
from cloudvault.stores.protocol import iter_keys

from .exceptions import ConflictError, InvalidPathError, NotFoundError
from .keys import FILE_PREFIX, FOLDER_PREFIX, file_key, folder_key, share_key, strip_prefix
from .sharing import is_folder_shared
from .types import DeleteFolderResult, FolderInfo, MoveFilesResult, RenameFolderResult
from .utils import (
    ROOT_FOLDER,
    ancestors,
    guess_mime_type,
    immediate_child,
    is_descendant,
    is_same_or_descendant,
    make_blob_key,
    parent_folder,
    replace_prefix,
    split_key,
    validate_blob_key,
    validate_folder,
    validate_name,
)

if TYPE_CHECKING:
    from cloudvault.stores.protocol import BlobStore, MetadataStore
    from cloudvault.stores.types import BlobData, BlobObject

    from .sharing import FolderSharingService
    from .stats import StatsService

logger = logging.getLogger(__name__)


def content_disposition(name: str) -> str:
    return f'attachment; filename="{name}"'


@dataclass
class TreeSnapshot:
    """Point-in-time view of every file and folder, used for tree queries."""

    files: list[FileRecord] = field(default_factory=list)
    folder_records: set[str] = field(default_factory=set)
    folders: set[str] = field(default_factory=set, init=False)

    def __post_init__(self) -> None:
        for path in self.folder_records:
            self.folders.update(ancestors(path))
        for record in self.files:
            self.folders.update(ancestors(record.folder))

    def is_folder(self, path: str) -> bool:
        return path == ROOT_FOLDER or path in self.folders

    def find_file(self, folder: str, name: str) -> FileRecord | None:
        for record in self.files:
            if record.folder == folder and record.name == name:
                return record
        return None

    def child_files(self, folder: str) -> list[FileRecord]:
        return sorted((f for f in self.files if f.folder == folder), key=lambda f: f.name)

    def child_folders(self, parent: str) -> list[str]:
        children = {immediate_child(path, parent) for path in self.folders}
        children.discard(None)
        return sorted(children)  # type: ignore[arg-type]

    def files_under(self, folder: str) -> list[FileRecord]:
        """Files in *folder* or any of its descendants."""
        return [f for f in self.files if is_same_or_descendant(f.folder, folder)]

    def all_folder_paths(self) -> list[str]:
        return sorted(self.folders)


class FileRegistry:
    """Single source of truth for file metadata and the folder tree.

    Composes the metadata store, the blob store, the stats counters and the
    folder sharing engine (for rename/delete cascades of share state).
    """

    def __init__(
        self,
        metadata: MetadataStore,
        blobs: BlobStore,
        *,
        stats: StatsService,
        sharing: FolderSharingService,
    ) -> None:
        self.metadata = metadata
        self.blobs = blobs
        self.stats = stats
        self.sharing = sharing

    # =========================================================================
    # File lookup
    # =========================================================================

    async def _load_file(self, key: str) -> FileRecord | None:
        raw = await self.metadata.get(key)
        if raw is None:
            return None
        try:
            return FileRecord.model_validate_json(raw)
        except ValidationError:
            logger.warning("Skipping corrupt file record %s", key, exc_info=True)
            return None

    async def list_files(
        self, predicate: Callable[[FileRecord], bool] | None = None
    ) -> list[FileRecord]:
        """Full scan of ``file:`` records, optionally filtered."""
        records: list[FileRecord] = []
        async for key in iter_keys(self.metadata, FILE_PREFIX):
            record = await self._load_file(key)
            if record is None:
                continue
            if predicate is None or predicate(record):
                records.append(record)
        return records

    async def get_file(self, file_id: str) -> FileRecord | None:
        return await self._load_file(file_key(file_id))

    async def require_file(self, file_id: str) -> FileRecord:
        record = await self.get_file(file_id)
        if record is None:
            raise NotFoundError("File not found")
        return record

    async def find_file(self, folder: str, name: str) -> FileRecord | None:
        for record in await self.list_files(lambda f: f.folder == folder and f.name == name):
            return record
        return None

    async def save_file(self, record: FileRecord) -> FileRecord:
        await self.metadata.put(file_key(record.id), record.model_dump_json())
        return record

    async def list_child_files(self, folder: str) -> list[FileRecord]:
        folder = validate_folder(folder)
        records = await self.list_files(lambda f: f.folder == folder)
        return sorted(records, key=lambda f: f.name)

    # =========================================================================
    # File writes
    # =========================================================================

    async def create_file(
        self,
        folder: str,
        name: str,
        size: int,
        mime_type: str | None = None,
        blob_key: str | None = None,
    ) -> FileRecord:
        """Write a new FileRecord with a fresh id.  Does not touch blobs or stats."""
        folder = validate_folder(folder)
        name = validate_name(name)
        key = validate_blob_key(blob_key or make_blob_key(folder, name))
        record = FileRecord(
            key=key,
            name=name,
            size=size,
            mime_type=mime_type or guess_mime_type(name),
            folder=folder,
        )
        return await self.save_file(record)

    async def store_file(
        self,
        folder: str,
        name: str,
        data: BlobData,
        content_type: str | None = None,
    ) -> tuple[FileRecord, bool]:
        """Upload *data* as ``folder/name``.

        Overwrites the content of an existing file at that path (keeping its
        id and share state).  Returns ``(record, created)``.
        """
        folder = validate_folder(folder)
        name = validate_name(name)
        existing = await self.find_file(folder, name)
        if existing is not None:
            return await self.replace_file_content(existing, data, content_type), False

        content_type = content_type or guess_mime_type(name)
        key = validate_blob_key(make_blob_key(folder, name))
        # The record id is embedded in the blob's custom metadata
        pending = FileRecord(key=key, name=name, folder=folder, mime_type=content_type)
        obj = await self.blobs.put(
            key,
            data,
            content_type=content_type,
            content_disposition=content_disposition(name),
            custom_metadata={"fileId": pending.id},
        )
        pending.size = obj.size
        await self.ensure_folder_chain(folder)
        await self.save_file(pending)
        await self.stats.adjust(1, obj.size)
        logger.debug("Stored %s (%d bytes)", key, obj.size)
        return pending, True

    async def replace_file_content(
        self,
        record: FileRecord,
        data: BlobData,
        content_type: str | None = None,
    ) -> FileRecord:
        """Swap the blob behind *record*, applying the size delta to stats."""
        content_type = content_type or record.mime_type
        obj = await self.blobs.put(
            record.key,
            data,
            content_type=content_type,
            content_disposition=content_disposition(record.name),
            custom_metadata={"fileId": record.id},
        )
        delta = obj.size - record.size
        record.size = obj.size
        record.mime_type = content_type
        record.uploaded_at = obj.uploaded
        await self.save_file(record)
        await self.stats.adjust(0, delta)
        return record

    async def register_blob(self, obj: BlobObject) -> FileRecord:
        """Create (or refresh) the record for a blob written out of band.

        Used when a multipart upload completes: the blob already exists under
        ``obj.key`` and only the metadata needs to catch up.
        """
        folder, name = split_key(validate_blob_key(obj.key))
        folder = validate_folder(folder)
        existing = await self.find_file(folder, name)
        if existing is not None:
            delta = obj.size - existing.size
            existing.size = obj.size
            existing.uploaded_at = obj.uploaded
            if obj.content_type:
                existing.mime_type = obj.content_type
            await self.save_file(existing)
            await self.stats.adjust(0, delta)
            return existing

        await self.ensure_folder_chain(folder)
        record = await self.create_file(
            folder, name, obj.size, obj.content_type or guess_mime_type(name), obj.key
        )
        await self.stats.adjust(1, obj.size)
        return record

    async def rename_file(self, file_id: str, new_name: str) -> FileRecord:
        """Rename a file in place, moving its blob so the key stays ``folder/name``."""
        record = await self.require_file(file_id)
        new_name = validate_name(new_name)
        if new_name == record.name:
            return record
        clash = await self.find_file(record.folder, new_name)
        if clash is not None:
            raise ConflictError(f"A file named {new_name!r} already exists")
        new_key = validate_blob_key(make_blob_key(record.folder, new_name))
        if await self.blobs.copy(record.key, new_key) is None:
            logger.warning("Blob missing while renaming %s", record.key)
        else:
            await self.blobs.delete(record.key)
        record.name = new_name
        record.key = new_key
        return await self.save_file(record)

    async def _drop_file(self, record: FileRecord) -> None:
        """Remove blob, record and share token without touching stats."""
        await self.blobs.delete(record.key)
        await self.metadata.delete(file_key(record.id))
        if record.share_token:
            await self.metadata.delete(share_key(record.share_token))

    async def delete_file(self, file_id: str) -> FileRecord:
        record = await self.require_file(file_id)
        await self._drop_file(record)
        await self.stats.adjust(-1, -record.size)
        logger.debug("Deleted file %s (%s)", record.id, record.key)
        return record

    async def delete_files(self, file_ids: list[str]) -> int:
        """Delete every existing id in *file_ids*; missing ids are ignored."""
        deleted = 0
        freed = 0
        for file_id in file_ids:
            record = await self.get_file(file_id)
            if record is None:
                continue
            await self._drop_file(record)
            deleted += 1
            freed += record.size
        await self.stats.adjust(-deleted, -freed)
        return deleted

    async def copy_file(
        self, record: FileRecord, dest_folder: str, dest_name: str
    ) -> FileRecord:
        """Duplicate *record* under a fresh id with no downloads or share state."""
        dest_folder = validate_folder(dest_folder)
        dest_name = validate_name(dest_name)
        new_key = validate_blob_key(make_blob_key(dest_folder, dest_name))
        if await self.blobs.copy(record.key, new_key) is None:
            raise NotFoundError(f"Blob not found: {record.key}")
        await self.ensure_folder_chain(dest_folder)
        copy = await self.create_file(
            dest_folder, dest_name, record.size, record.mime_type, new_key
        )
        await self.stats.adjust(1, record.size)
        return copy

    async def move_file(
        self, record: FileRecord, dest_folder: str, dest_name: str
    ) -> FileRecord:
        """Move *record* to a new path, keeping its id, downloads and share state."""
        dest_folder = validate_folder(dest_folder)
        dest_name = validate_name(dest_name)
        new_key = validate_blob_key(make_blob_key(dest_folder, dest_name))
        if new_key == record.key:
            return record
        if await self.blobs.copy(record.key, new_key) is None:
            raise NotFoundError(f"Blob not found: {record.key}")
        await self.blobs.delete(record.key)
        await self.ensure_folder_chain(dest_folder)
        record.folder = dest_folder
        record.name = dest_name
        record.key = new_key
        return await self.save_file(record)

    # =========================================================================
    # Folders
    # =========================================================================

    async def list_folder_records(self) -> set[str]:
        """Paths with an explicit folder record."""
        paths: set[str] = set()
        async for key in iter_keys(self.metadata, FOLDER_PREFIX):
            path = strip_prefix(key, FOLDER_PREFIX)
            if path and path != ROOT_FOLDER:
                paths.add(path)
        return paths

    async def get_folder_record(self, path: str) -> FolderRecord | None:
        raw = await self.metadata.get(folder_key(path))
        if raw is None:
            return None
        try:
            return FolderRecord.model_validate_json(raw)
        except ValidationError:
            logger.warning("Skipping corrupt folder record %s", path, exc_info=True)
            return None

    async def snapshot(self) -> TreeSnapshot:
        return TreeSnapshot(
            files=await self.list_files(),
            folder_records=await self.list_folder_records(),
        )

    async def folder_exists(self, path: str) -> bool:
        path = validate_folder(path)
        if path == ROOT_FOLDER:
            return True
        if await self.metadata.get(folder_key(path)) is not None:
            return True
        return (await self.snapshot()).is_folder(path)

    async def create_folder(self, path: str) -> bool:
        """Write an explicit folder record.  Returns False if one already exists."""
        path = validate_folder(path)
        if path == ROOT_FOLDER:
            return False
        key = folder_key(path)
        if await self.metadata.get(key) is not None:
            return False
        await self.metadata.put(key, FolderRecord(name=path).model_dump_json())
        logger.debug("Created folder %s", path)
        return True

    async def ensure_folder_chain(self, path: str) -> None:
        """Create explicit records for *path* and every missing ancestor."""
        path = validate_folder(path)
        for folder in reversed(ancestors(path)):
            await self.create_folder(folder)

    async def list_child_folders(self, parent: str) -> list[str]:
        parent = validate_folder(parent)
        return (await self.snapshot()).child_folders(parent)

    async def list_folders(self) -> list[FolderInfo]:
        """Every explicit and implicit folder with its effective share state."""
        tree = await self.snapshot()
        flags = await self.sharing.load_flags()
        return [
            FolderInfo(
                path=path,
                shared=is_folder_shared(path, flags.shared, flags.excluded),
                directly_shared=path in flags.shared,
                excluded=path in flags.excluded,
            )
            for path in tree.all_folder_paths()
        ]

    async def rename_folder(self, old: str, new: str) -> RenameFolderResult:
        """Rename *old* to *new*, cascading to descendants, files and share state."""
        old = validate_folder(old)
        new = validate_folder(new)
        result = RenameFolderResult(old_path=old, new_path=new)
        if old == new:
            return result
        if ROOT_FOLDER in (old, new):
            raise InvalidPathError("Cannot rename the root folder")
        if is_descendant(new, old):
            raise InvalidPathError(f"Cannot move {old!r} inside itself")

        tree = await self.snapshot()
        if not tree.is_folder(old):
            raise NotFoundError(f"Folder not found: {old}")
        if tree.is_folder(new):
            raise ConflictError(f"Folder already exists: {new}")

        logger.info("Renaming folder %s -> %s", old, new)

        # 1. The folder record itself
        existing = await self.get_folder_record(old)
        created_at = existing.created_at if existing else None
        await self.metadata.put(
            folder_key(new),
            FolderRecord(name=new, created_at=created_at).model_dump_json(),
        )
        await self.metadata.delete(folder_key(old))
        await self.ensure_folder_chain(parent_folder(new))

        # 2. Share flags and links
        await self.sharing.transfer_folder_state(old, new)

        # 3. Descendant folder records
        for path in sorted(tree.folder_records):
            if not is_descendant(path, old):
                continue
            moved = replace_prefix(path, old, new)
            raw = await self.metadata.get(folder_key(path))
            await self.metadata.put(
                folder_key(moved),
                raw or FolderRecord(name=moved).model_dump_json(),
            )
            await self.metadata.delete(folder_key(path))
            result.moved_folders += 1

        # 4. Files: recompute folder and blob key, move the blob
        for record in tree.files_under(old):
            new_folder = replace_prefix(record.folder, old, new)
            new_key = make_blob_key(new_folder, record.name)
            if await self.blobs.copy(record.key, new_key) is None:
                logger.warning("Blob missing during folder rename: %s", record.key)
                result.missing_blobs.append(record.key)
            else:
                await self.blobs.delete(record.key)
            record.folder = new_folder
            record.key = new_key
            await self.save_file(record)
            result.moved_files += 1

        return result

    async def delete_folder(self, path: str) -> DeleteFolderResult:
        """Delete *path* with every descendant folder, file and share state."""
        path = validate_folder(path)
        if path == ROOT_FOLDER:
            raise InvalidPathError("Cannot delete the root folder")

        tree = await self.snapshot()
        if not tree.is_folder(path):
            raise NotFoundError(f"Folder not found: {path}")

        logger.info("Deleting folder %s", path)
        result = DeleteFolderResult()

        for folder in sorted(tree.folder_records):
            if is_same_or_descendant(folder, path):
                await self.metadata.delete(folder_key(folder))
                result.deleted_folders += 1

        await self.sharing.purge_folder_state(path)

        for record in tree.files_under(path):
            await self._drop_file(record)
            result.deleted_files += 1
            result.freed_bytes += record.size

        await self.stats.adjust(-result.deleted_files, -result.freed_bytes)
        return result

    async def move_files(self, file_ids: list[str], target: str) -> MoveFilesResult:
        """Move files into *target*.

        Files already in *target*, unknown ids and files whose blob is missing
        are skipped.  A same-named file already at the destination is replaced.
        """
        target = validate_folder(target)
        await self.ensure_folder_chain(target)
        result = MoveFilesResult()

        for file_id in file_ids:
            record = await self.get_file(file_id)
            if record is None or record.folder == target:
                result.skipped.append(file_id)
                continue
            new_key = validate_blob_key(make_blob_key(target, record.name))
            displaced = await self.find_file(target, record.name)
            if await self.blobs.copy(record.key, new_key) is None:
                logger.warning("Skipping move of %s: blob missing", record.key)
                result.skipped.append(file_id)
                continue
            await self.blobs.delete(record.key)
            if displaced is not None and displaced.id != record.id:
                await self.metadata.delete(file_key(displaced.id))
                if displaced.share_token:
                    await self.metadata.delete(share_key(displaced.share_token))
                await self.stats.adjust(-1, -displaced.size)
            record.folder = target
            record.key = new_key
            await self.save_file(record)
            result.moved.append(file_id)

        return result
