"""CloudVault — async facade wiring stores, registry, sharing, gate and WebDAV."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import create_async_engine

from cloudvault.auth import SessionService
from cloudvault.config import VaultConfig
from cloudvault.dav.handler import WebDAVHandler
from cloudvault.fs.registry import FileRegistry
from cloudvault.fs.sharing import FileShareService, FolderSharingService
from cloudvault.fs.stats import StatsService
from cloudvault.gate import ShareGate
from cloudvault.stores.database import DatabaseMetadataStore
from cloudvault.stores.local_disk import LocalDiskBlobStore
from cloudvault.stores.memory import MemoryBlobStore, MemoryMetadataStore

if TYPE_CHECKING:
    from cloudvault.fs.types import VaultStats
    from cloudvault.stores.protocol import BlobStore, MetadataStore

logger = logging.getLogger(__name__)


class CloudVault:
    """Owns one metadata store and one blob store and every service built on them.

    In-memory vault for tests::

        vault = CloudVault(MemoryMetadataStore(), MemoryBlobStore())
        await vault.open()

    Configured vault::

        vault = CloudVault.from_config(load_config("vault.yaml"))
    """

    def __init__(
        self,
        metadata: MetadataStore,
        blobs: BlobStore,
        *,
        config: VaultConfig | None = None,
    ) -> None:
        self.config = config or VaultConfig()
        self.metadata = metadata
        self.blobs = blobs
        self._closed = False

        salt = self.config.share_password_salt
        self.stats = StatsService(metadata)
        self.folder_sharing = FolderSharingService(metadata, salt=salt)
        self.registry = FileRegistry(
            metadata, blobs, stats=self.stats, sharing=self.folder_sharing
        )
        self.file_shares = FileShareService(self.registry, salt=salt)
        self.gate = ShareGate(
            self.registry,
            self.folder_sharing,
            self.file_shares,
            cookie_max_age=self.config.share_cookie_max_age,
        )
        self.sessions = SessionService(metadata, ttl_seconds=self.config.session_ttl_seconds)
        self.dav = WebDAVHandler(self.registry)

    @classmethod
    def from_config(cls, config: VaultConfig) -> CloudVault:
        """Build stores from *config*; call :meth:`open` before use."""
        uses_default_db = config.metadata_backend == "database" and config.database_url is None
        if uses_default_db or config.blob_backend == "local":
            config.data_dir.mkdir(parents=True, exist_ok=True)

        metadata: MetadataStore
        if config.metadata_backend == "memory":
            metadata = MemoryMetadataStore()
        else:
            metadata = DatabaseMetadataStore(create_async_engine(config.resolved_database_url))

        blobs: BlobStore
        if config.blob_backend == "memory":
            blobs = MemoryBlobStore()
        else:
            blobs = LocalDiskBlobStore(config.blob_dir)
        return cls(metadata, blobs, config=config)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        await self.metadata.open()
        await self.blobs.open()
        logger.info(
            "Vault opened (metadata=%s, blobs=%s)",
            type(self.metadata).__name__,
            type(self.blobs).__name__,
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.blobs.close()
        await self.metadata.close()

    async def __aenter__(self) -> CloudVault:
        await self.open()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    async def get_stats(self) -> VaultStats:
        return self.stats.summarize(await self.registry.list_files())

    async def reconcile_stats(self) -> tuple[int, int]:
        return await self.stats.reconcile(await self.registry.list_files())
