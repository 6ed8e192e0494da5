"""Folder sharing engine and file share grants.

Folder visibility is never stored per folder.  Only two flag sets are
persisted, ``foldershare:{path}`` (directly shared) and
``foldershare-exclude:{path}`` (excluded), and the effective state of any
path is derived at read time by :func:`is_folder_shared`: walk from the path
up towards root, nearest first, and the first flag found wins.

Folder share links are independent of flag inheritance: a link grants browse
access to exactly one subtree, whatever its flags say.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import uuid
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from pydantic import ValidationError

from cloudvault.models.shares import FolderShareLink
from cloudvault.stores.protocol import iter_keys

from .exceptions import InvalidPathError, NotFoundError
from .keys import (
    FOLDER_EXCLUDE_PREFIX,
    FOLDER_LINK_META_PREFIX,
    FOLDER_SHARE_PREFIX,
    folder_exclude_key,
    folder_link_key,
    folder_link_meta_key,
    folder_share_key,
    share_key,
    strip_prefix,
)
from .types import FolderBrowseResult, FolderFlags, ShareGrant
from .utils import (
    ROOT_FOLDER,
    ancestors,
    has_traversal,
    is_same_or_descendant,
    normalize_folder,
    parent_folder,
    replace_prefix,
    validate_folder,
)

if TYPE_CHECKING:
    from collections.abc import Collection

    from cloudvault.models.files import FileRecord
    from cloudvault.stores.protocol import MetadataStore

    from .registry import FileRegistry, TreeSnapshot

logger = logging.getLogger(__name__)

DEFAULT_SHARE_SALT = "cloudvault-share-salt"
FLAG_VALUE = "1"


# =============================================================================
# Pure helpers
# =============================================================================


def is_folder_shared(
    path: str, shared: Collection[str], excluded: Collection[str]
) -> bool:
    """Effective share state of *path*: nearest flag wins, no flag means private.

    >>> is_folder_shared("a/b/c", {"a"}, {"a/b"})
    False
    """
    for folder in ancestors(path):
        if folder in excluded:
            return False
        if folder in shared:
            return True
    return False


def hash_share_password(password: str, salt: str = DEFAULT_SHARE_SALT) -> str:
    """SHA-256 hex of ``password:salt``."""
    return hashlib.sha256(f"{password}:{salt}".encode()).hexdigest()


def verify_share_password(
    password: str, stored_hash: str, salt: str = DEFAULT_SHARE_SALT
) -> bool:
    candidate = hash_share_password(password, salt)
    return hmac.compare_digest(candidate.encode(), stored_hash.encode())


def _expiry(expires_in_days: float | None) -> datetime | None:
    if expires_in_days is None or expires_in_days <= 0:
        return None
    return datetime.now(UTC) + timedelta(days=expires_in_days)


def _flag_path(path: str) -> str:
    path = validate_folder(path)
    if path == ROOT_FOLDER:
        raise InvalidPathError("The root folder cannot be shared or excluded")
    return path


# =============================================================================
# Folder sharing
# =============================================================================


class FolderSharingService:
    """Folder share/exclude flags and folder share links."""

    def __init__(self, metadata: MetadataStore, *, salt: str = DEFAULT_SHARE_SALT) -> None:
        self.metadata = metadata
        self.salt = salt

    # ------------------------------------------------------------------
    # Flags
    # ------------------------------------------------------------------

    async def _flag_set(self, prefix: str) -> set[str]:
        return {strip_prefix(key, prefix) async for key in iter_keys(self.metadata, prefix)}

    async def load_flags(self) -> FolderFlags:
        return FolderFlags(
            shared=await self._flag_set(FOLDER_SHARE_PREFIX),
            excluded=await self._flag_set(FOLDER_EXCLUDE_PREFIX),
        )

    async def is_shared(self, path: str) -> bool:
        flags = await self.load_flags()
        return is_folder_shared(normalize_folder(path), flags.shared, flags.excluded)

    async def toggle_folder_share(self, path: str) -> bool:
        """Flip the direct-share flag on *path*.  Returns the new state.

        Both setting and clearing the flag also clear an exclude flag on the
        same path.  Descendants are untouched.
        """
        path = _flag_path(path)
        key = folder_share_key(path)
        currently = await self.metadata.get(key) is not None
        if currently:
            await self.metadata.delete(key)
        else:
            await self.metadata.put(key, FLAG_VALUE)
        await self.metadata.delete(folder_exclude_key(path))
        logger.debug("Folder %s shared=%s", path, not currently)
        return not currently

    async def toggle_folder_exclude(self, path: str) -> bool:
        """Flip the exclude flag on *path*.  Setting it clears a direct-share flag."""
        path = _flag_path(path)
        key = folder_exclude_key(path)
        if await self.metadata.get(key) is not None:
            await self.metadata.delete(key)
            logger.debug("Folder %s excluded=False", path)
            return False
        await self.metadata.put(key, FLAG_VALUE)
        await self.metadata.delete(folder_share_key(path))
        logger.debug("Folder %s excluded=True", path)
        return True

    async def list_shared_folders(self) -> list[str]:
        """Directly shared folder paths, sorted."""
        return sorted(await self._flag_set(FOLDER_SHARE_PREFIX))

    @staticmethod
    def public_roots(tree: TreeSnapshot, flags: FolderFlags) -> list[str]:
        """Effectively shared folders whose parent is not effectively shared."""
        roots = []
        for path in tree.all_folder_paths():
            if not is_folder_shared(path, flags.shared, flags.excluded):
                continue
            parent = parent_folder(path)
            if parent == ROOT_FOLDER or not is_folder_shared(
                parent, flags.shared, flags.excluded
            ):
                roots.append(path)
        return roots

    @staticmethod
    def browse_public_folder(
        path: str, tree: TreeSnapshot, flags: FolderFlags
    ) -> FolderBrowseResult:
        """List an effectively shared folder for guests; excluded children are hidden."""
        path = validate_folder(path)
        if not tree.is_folder(path) or not is_folder_shared(
            path, flags.shared, flags.excluded
        ):
            raise NotFoundError("Folder not found")
        return FolderBrowseResult(
            folder=path,
            path=path,
            files=tree.child_files(path),
            subfolders=[
                child
                for child in tree.child_folders(path)
                if is_folder_shared(child, flags.shared, flags.excluded)
            ],
        )

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    async def _load_link(self, token: str) -> FolderShareLink | None:
        raw = await self.metadata.get(folder_link_key(token))
        if raw is None:
            return None
        try:
            return FolderShareLink.model_validate_json(raw)
        except ValidationError:
            logger.warning("Skipping corrupt folder share link %s", token, exc_info=True)
            return None

    async def _save_link(self, link: FolderShareLink) -> None:
        await self.metadata.put(folder_link_key(link.token), link.model_dump_json())
        await self.metadata.put(folder_link_meta_key(link.folder), link.token)

    async def create_folder_share_link(
        self,
        path: str,
        password: str | None = None,
        expires_in_days: float | None = None,
    ) -> FolderShareLink:
        """Create a link for *path*, invalidating any previous token for it."""
        path = _flag_path(path)
        old_token = await self.metadata.get(folder_link_meta_key(path))
        if old_token:
            await self.metadata.delete(folder_link_key(old_token))

        link = FolderShareLink(
            token=str(uuid.uuid4()),
            folder=path,
            expires_at=_expiry(expires_in_days),
            password_hash=hash_share_password(password, self.salt) if password else None,
        )
        await self._save_link(link)
        logger.info("Created folder share link for %s", path)
        return link

    async def get_folder_share_link_info(self, path: str) -> FolderShareLink | None:
        path = validate_folder(path)
        token = await self.metadata.get(folder_link_meta_key(path))
        if not token:
            return None
        return await self._load_link(token)

    async def revoke_folder_share_link(self, path: str) -> bool:
        path = validate_folder(path)
        meta_key = folder_link_meta_key(path)
        token = await self.metadata.get(meta_key)
        if not token:
            return False
        await self.metadata.delete(folder_link_key(token))
        await self.metadata.delete(meta_key)
        logger.info("Revoked folder share link for %s", path)
        return True

    async def resolve_folder_share_token(self, token: str) -> FolderShareLink | None:
        if not token:
            return None
        return await self._load_link(token)

    def browse_folder_share_link(
        self, folder: str, subpath: str | None, tree: TreeSnapshot
    ) -> FolderBrowseResult:
        """Immediate children of ``folder/subpath``, confined to the shared subtree."""
        subpath = (subpath or "").strip("/")
        if has_traversal(subpath):
            raise InvalidPathError("Invalid path")
        target = folder if not subpath else normalize_folder(f"{folder}/{subpath}")
        if not is_same_or_descendant(target, folder):
            raise InvalidPathError("Invalid path")
        if not tree.is_folder(target):
            raise NotFoundError("Folder not found")
        relative = "" if target == folder else target[len(folder) + 1 :]
        return FolderBrowseResult(
            folder=target,
            path=relative,
            files=tree.child_files(target),
            subfolders=tree.child_folders(target),
        )

    # ------------------------------------------------------------------
    # Cascades
    # ------------------------------------------------------------------

    async def _moved_keys(self, prefix: str, path: str) -> list[tuple[str, str]]:
        """``(key, folder)`` pairs under *prefix* for *path* and its descendants."""
        pairs = []
        async for key in iter_keys(self.metadata, prefix + path):
            folder = strip_prefix(key, prefix)
            if is_same_or_descendant(folder, path):
                pairs.append((key, folder))
        return pairs

    async def transfer_folder_state(self, old: str, new: str) -> None:
        """Move flags and links of *old* and its descendants under *new*."""
        for prefix in (FOLDER_SHARE_PREFIX, FOLDER_EXCLUDE_PREFIX):
            for key, folder in await self._moved_keys(prefix, old):
                value = await self.metadata.get(key)
                await self.metadata.delete(key)
                await self.metadata.put(
                    prefix + replace_prefix(folder, old, new), value or FLAG_VALUE
                )

        for key, folder in await self._moved_keys(FOLDER_LINK_META_PREFIX, old):
            token = await self.metadata.get(key)
            await self.metadata.delete(key)
            if not token:
                continue
            link = await self._load_link(token)
            if link is None:
                continue
            link.folder = replace_prefix(folder, old, new)
            await self._save_link(link)

    async def purge_folder_state(self, path: str) -> None:
        """Drop flags and links of *path* and its descendants."""
        for prefix in (FOLDER_SHARE_PREFIX, FOLDER_EXCLUDE_PREFIX):
            for key, _ in await self._moved_keys(prefix, path):
                await self.metadata.delete(key)

        for key, _ in await self._moved_keys(FOLDER_LINK_META_PREFIX, path):
            token = await self.metadata.get(key)
            if token:
                await self.metadata.delete(folder_link_key(token))
            await self.metadata.delete(key)


# =============================================================================
# File shares
# =============================================================================


class FileShareService:
    """Per-file public share grants stored on the FileRecord plus ``share:{token}``."""

    def __init__(self, registry: FileRegistry, *, salt: str = DEFAULT_SHARE_SALT) -> None:
        self.registry = registry
        self.metadata = registry.metadata
        self.salt = salt

    @staticmethod
    def _grant(record: FileRecord) -> ShareGrant:
        return ShareGrant(
            file_id=record.id,
            token=record.share_token,
            has_password=bool(record.share_password),
            expires_at=record.share_expires_at,
            expired=record.share_expired(),
            downloads=record.downloads,
        )

    async def create_share(
        self,
        file_id: str,
        password: str | None = None,
        expires_in_days: float | None = None,
    ) -> ShareGrant:
        """Issue a new token for *file_id*, revoking the previous one."""
        record = await self.registry.require_file(file_id)
        if record.share_token:
            await self.metadata.delete(share_key(record.share_token))

        record.share_token = str(uuid.uuid4())
        record.share_password = hash_share_password(password, self.salt) if password else None
        record.share_expires_at = _expiry(expires_in_days)

        await self.metadata.put(share_key(record.share_token), record.id)
        await self.registry.save_file(record)
        logger.info("Created share for file %s", record.id)
        return self._grant(record)

    async def revoke_share(self, file_id: str) -> None:
        record = await self.registry.require_file(file_id)
        if record.share_token:
            await self.metadata.delete(share_key(record.share_token))
        record.clear_share()
        await self.registry.save_file(record)

    async def get_share_info(self, file_id: str) -> ShareGrant:
        return self._grant(await self.registry.require_file(file_id))

    async def resolve_share_token(self, token: str) -> FileRecord | None:
        """The file a token points to, or ``None`` if unknown or stale."""
        if not token:
            return None
        file_id = await self.metadata.get(share_key(token))
        if not file_id:
            return None
        record = await self.registry.get_file(file_id)
        if record is None or record.share_token != token:
            return None
        return record

    def verify_password(self, record: FileRecord, password: str) -> bool:
        if not record.share_password:
            return True
        return verify_share_password(password, record.share_password, self.salt)
