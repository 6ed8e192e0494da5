"""Result and value types shared by the store adapters."""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime


@dataclass
class ListPage:
    """One page of a prefix listing."""

    keys: list[str] = field(default_factory=list)
    cursor: str | None = None
    complete: bool = True


@dataclass(frozen=True)
class ByteRange:
    """A served slice of a blob: ``length`` bytes starting at ``offset``."""

    offset: int
    length: int

    @property
    def end(self) -> int:
        """Inclusive last byte index."""
        return self.offset + self.length - 1


@dataclass
class BlobObject:
    """Metadata of a stored blob."""

    key: str
    size: int
    etag: str
    uploaded: datetime
    content_type: str | None = None
    content_disposition: str | None = None
    custom_metadata: dict[str, str] = field(default_factory=dict)

    @property
    def http_etag(self) -> str:
        return f'"{self.etag}"'


@dataclass
class BlobBody(BlobObject):
    """A blob together with its (possibly partial) content stream."""

    stream: AsyncIterator[bytes] | None = None
    range: ByteRange | None = None

    async def read(self) -> bytes:
        """Drain the stream into memory."""
        if self.stream is None:
            return b""
        chunks = [chunk async for chunk in self.stream]
        return b"".join(chunks)


@dataclass
class UploadedPart:
    part_number: int
    etag: str


# =============================================================================
# Conditional requests
# =============================================================================


def _parse_http_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def _etag_list(value: str) -> list[str]:
    tags = []
    for raw in value.split(","):
        tag = raw.strip()
        if tag.startswith("W/"):
            tag = tag[2:]
        tags.append(tag.strip('"'))
    return tags


@dataclass
class Conditional:
    """HTTP precondition headers evaluated against a blob validator."""

    if_match: str | None = None
    if_none_match: str | None = None
    if_modified_since: datetime | None = None
    if_unmodified_since: datetime | None = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> Conditional | None:
        """Build from request headers; ``None`` when no precondition was sent."""
        cond = cls(
            if_match=headers.get("if-match"),
            if_none_match=headers.get("if-none-match"),
            if_modified_since=_parse_http_date(headers.get("if-modified-since")),
            if_unmodified_since=_parse_http_date(headers.get("if-unmodified-since")),
        )
        if cond.is_empty:
            return None
        return cond

    @property
    def is_empty(self) -> bool:
        return not (
            self.if_match
            or self.if_none_match
            or self.if_modified_since
            or self.if_unmodified_since
        )

    def evaluate(self, etag: str, last_modified: datetime) -> int | None:
        """Return 412 or 304 when a precondition fails, else ``None``.

        *etag* is compared without quotes; dates are compared at whole-second
        precision since HTTP dates carry no fractions.
        """
        etag = etag.strip('"')
        if last_modified.tzinfo is None:
            last_modified = last_modified.replace(tzinfo=UTC)
        last_modified = last_modified.replace(microsecond=0)

        if self.if_match is not None:
            tags = _etag_list(self.if_match)
            if "*" not in tags and etag not in tags:
                return 412
        elif self.if_unmodified_since is not None and last_modified > self.if_unmodified_since:
            return 412

        if self.if_none_match is not None:
            tags = _etag_list(self.if_none_match)
            if "*" in tags or etag in tags:
                return 304
        elif self.if_modified_since is not None and last_modified <= self.if_modified_since:
            return 304

        return None


BlobData = bytes | AsyncIterable[bytes]


async def iter_data(data: BlobData) -> AsyncIterator[bytes]:
    """Yield *data* as chunks whether it is bytes or an async iterable."""
    if isinstance(data, (bytes, bytearray, memoryview)):
        yield bytes(data)
        return
    async for chunk in data:
        if chunk:
            yield bytes(chunk)
