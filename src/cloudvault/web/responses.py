"""Response helpers shared by the API and share routers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from starlette.responses import Response, StreamingResponse

from cloudvault.dav.ranges import content_range, parse_range
from cloudvault.dav.xml import http_date
from cloudvault.fs.exceptions import NotFoundError
from cloudvault.fs.utils import preview_type
from cloudvault.stores.types import BlobBody, Conditional

if TYPE_CHECKING:
    from starlette.requests import Request

    from cloudvault.models.files import FileRecord
    from cloudvault.models.shares import FolderShareLink
    from cloudvault.stores.protocol import BlobStore

PREVIEW_CACHE_CONTROL = "public, max-age=3600"


def file_json(record: FileRecord) -> dict[str, Any]:
    """A FileRecord as returned by the API; the password hash never leaves."""
    data = record.model_dump(mode="json", exclude={"share_password"})
    data["has_password"] = bool(record.share_password)
    data["preview_type"] = preview_type(record.name, record.mime_type)
    return data


def link_json(link: FolderShareLink) -> dict[str, Any]:
    data = link.model_dump(mode="json", exclude={"password_hash"})
    data["has_password"] = link.has_password
    data["url"] = f"/s/{link.token}"
    return data


def disposition(kind: str, name: str) -> str:
    """``Content-Disposition`` value safe for latin-1 header encoding."""
    fallback = name.encode("ascii", "replace").decode("ascii").replace('"', "_")
    if fallback == name:
        return f'{kind}; filename="{name}"'
    return f"{kind}; filename=\"{fallback}\"; filename*=UTF-8''{quote(name, safe='')}"


async def stream_file(
    blobs: BlobStore,
    record: FileRecord,
    request: Request,
    *,
    headers: dict[str, str] | None = None,
) -> Response:
    """Stream the blob behind *record*, honoring ``Range`` and preconditions."""
    head = await blobs.head(record.key)
    if head is None:
        raise NotFoundError("File not found in storage")

    byte_range = parse_range(request.headers.get("range"), head.size)
    conditional = Conditional.from_headers(request.headers)
    result = await blobs.get(record.key, range=byte_range, conditional=conditional)
    if result is None:
        raise NotFoundError("File not found in storage")

    out = {
        "Content-Type": record.mime_type or head.content_type or "application/octet-stream",
        "ETag": head.http_etag,
        "Last-Modified": http_date(head.uploaded),
        "Accept-Ranges": "bytes",
    }
    out.update(headers or {})
    if not isinstance(result, BlobBody):
        status = conditional.evaluate(result.etag, result.uploaded) if conditional else None
        return Response(status_code=status or 412, headers={"ETag": head.http_etag})

    if byte_range is not None:
        out["Content-Range"] = content_range(byte_range, head.size)
        out["Content-Length"] = str(byte_range.length)
        return StreamingResponse(result.stream, status_code=206, headers=out)
    out["Content-Length"] = str(head.size)
    return StreamingResponse(result.stream, status_code=200, headers=out)
