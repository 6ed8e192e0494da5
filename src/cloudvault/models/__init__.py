"""SQLModel models for CloudVault."""

from cloudvault.models.files import FileRecord
from cloudvault.models.folders import FolderRecord
from cloudvault.models.kv import KVEntry, KVEntryBase
from cloudvault.models.shares import FolderShareLink, Session

__all__ = [
    "FileRecord",
    "FolderRecord",
    "FolderShareLink",
    "KVEntry",
    "KVEntryBase",
    "Session",
]
