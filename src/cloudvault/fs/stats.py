"""StatsService — running file counters and dashboard summaries.

Counters are updated by read-modify-write without synchronization, so
concurrent writers can lose updates.  Values are clamped at zero and
``reconcile()`` recomputes them from a full scan.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .keys import STATS_TOTAL_FILES, STATS_TOTAL_SIZE
from .types import VaultStats

if TYPE_CHECKING:
    from collections.abc import Iterable

    from cloudvault.models.files import FileRecord
    from cloudvault.stores.protocol import MetadataStore

logger = logging.getLogger(__name__)

TOP_N = 5


def _as_int(raw: str | None) -> int:
    if not raw:
        return 0
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric stats counter %r", raw)
        return 0


def _sort_time(record: FileRecord) -> datetime:
    ts = record.uploaded_at
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=UTC)


class StatsService:
    """Maintains ``stats:totalFiles`` and ``stats:totalSize``."""

    def __init__(self, metadata: MetadataStore) -> None:
        self._metadata = metadata

    async def get_counters(self) -> tuple[int, int]:
        """Return ``(total_files, total_size)`` as stored."""
        files = _as_int(await self._metadata.get(STATS_TOTAL_FILES))
        size = _as_int(await self._metadata.get(STATS_TOTAL_SIZE))
        return files, size

    async def adjust(self, files_delta: int = 0, size_delta: int = 0) -> None:
        if files_delta == 0 and size_delta == 0:
            return
        files, size = await self.get_counters()
        await self._metadata.put(STATS_TOTAL_FILES, str(max(0, files + files_delta)))
        await self._metadata.put(STATS_TOTAL_SIZE, str(max(0, size + size_delta)))

    async def set_counters(self, total_files: int, total_size: int) -> None:
        await self._metadata.put(STATS_TOTAL_FILES, str(max(0, total_files)))
        await self._metadata.put(STATS_TOTAL_SIZE, str(max(0, total_size)))

    async def reconcile(self, files: Iterable[FileRecord]) -> tuple[int, int]:
        """Overwrite the counters with values computed from *files*."""
        records = list(files)
        total_size = sum(f.size for f in records)
        await self.set_counters(len(records), total_size)
        logger.info("Reconciled stats: %d files, %d bytes", len(records), total_size)
        return len(records), total_size

    @staticmethod
    def summarize(files: Iterable[FileRecord]) -> VaultStats:
        """Build dashboard stats from a full file listing."""
        records = list(files)
        recent = sorted(records, key=_sort_time, reverse=True)[:TOP_N]
        top = sorted(
            (f for f in records if f.downloads > 0),
            key=lambda f: f.downloads,
            reverse=True,
        )[:TOP_N]
        return VaultStats(
            total_files=len(records),
            total_size=sum(f.size for f in records),
            total_downloads=sum(f.downloads for f in records),
            recent_uploads=recent,
            top_downloaded=top,
        )
