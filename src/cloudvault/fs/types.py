"""Result types: FolderInfo, RenameFolderResult, DeleteFolderResult, etc."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from cloudvault.models.files import FileRecord


@dataclass
class FolderInfo:
    """A folder as shown in listings, with its effective share state."""

    path: str
    shared: bool = False
    directly_shared: bool = False
    excluded: bool = False


@dataclass
class FolderFlags:
    """Folder share flags.  Explicit set membership, never truthy values."""

    shared: set[str] = field(default_factory=set)
    excluded: set[str] = field(default_factory=set)


@dataclass
class RenameFolderResult:
    """Result of a folder rename cascade."""

    old_path: str
    new_path: str
    moved_files: int = 0
    moved_folders: int = 0
    missing_blobs: list[str] = field(default_factory=list)


@dataclass
class DeleteFolderResult:
    """Result of a folder delete cascade."""

    deleted_files: int = 0
    deleted_folders: int = 0
    freed_bytes: int = 0


@dataclass
class MoveFilesResult:
    """Result of a bulk file move.  Both lists hold file ids."""

    moved: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


@dataclass
class FolderBrowseResult:
    """Immediate children of one folder inside a shared subtree."""

    folder: str
    path: str
    files: list[FileRecord] = field(default_factory=list)
    subfolders: list[str] = field(default_factory=list)


@dataclass
class ShareGrant:
    """A file's public share link."""

    file_id: str
    token: str | None = None
    has_password: bool = False
    expires_at: datetime | None = None
    expired: bool = False
    downloads: int = 0


@dataclass
class VaultStats:
    """Dashboard counters."""

    total_files: int = 0
    total_size: int = 0
    total_downloads: int = 0
    recent_uploads: list[FileRecord] = field(default_factory=list)
    top_downloaded: list[FileRecord] = field(default_factory=list)
