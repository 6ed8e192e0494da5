"""Storage adapters: metadata key-value stores and blob stores."""

from .database import DatabaseMetadataStore
from .local_disk import LocalDiskBlobStore
from .memory import MemoryBlobStore, MemoryMetadataStore
from .protocol import BlobStore, MetadataStore, iter_keys
from .types import (
    BlobBody,
    BlobObject,
    ByteRange,
    Conditional,
    ListPage,
    UploadedPart,
)

__all__ = [
    "BlobBody",
    "BlobObject",
    "BlobStore",
    "ByteRange",
    "Conditional",
    "DatabaseMetadataStore",
    "ListPage",
    "LocalDiskBlobStore",
    "MemoryBlobStore",
    "MemoryMetadataStore",
    "MetadataStore",
    "UploadedPart",
    "iter_keys",
]
