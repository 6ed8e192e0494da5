"""Core vault layer — registry, sharing engine, stats, errors and path algebra.

Only leaf modules are re-exported here.  Import the services from
``cloudvault.fs.registry``, ``cloudvault.fs.sharing`` and ``cloudvault.fs.stats``.
"""

from cloudvault.fs.exceptions import (
    BadRequestError,
    ConflictError,
    InvalidPathError,
    NotFoundError,
    PreconditionFailedError,
    RangeNotSatisfiableError,
    ShareAccessDeniedError,
    StorageError,
    UnauthorizedError,
    UnsupportedMediaTypeError,
    VaultError,
)
from cloudvault.fs.types import (
    DeleteFolderResult,
    FolderBrowseResult,
    FolderFlags,
    FolderInfo,
    MoveFilesResult,
    RenameFolderResult,
    ShareGrant,
    VaultStats,
)
from cloudvault.fs.utils import ROOT_FOLDER

__all__ = [
    "ROOT_FOLDER",
    "BadRequestError",
    "ConflictError",
    "DeleteFolderResult",
    "FolderBrowseResult",
    "FolderFlags",
    "FolderInfo",
    "InvalidPathError",
    "MoveFilesResult",
    "NotFoundError",
    "PreconditionFailedError",
    "RangeNotSatisfiableError",
    "RenameFolderResult",
    "ShareAccessDeniedError",
    "ShareGrant",
    "StorageError",
    "UnauthorizedError",
    "UnsupportedMediaTypeError",
    "VaultError",
    "VaultStats",
]
