"""WebDAVHandler — class-1 WebDAV over the vault's virtual path space.

Every method is stateless: each request re-reads the tree from the
registry.  A DAV path maps 1:1 to ``(folder, name)`` by its last slash and
the mount root is folder ``root``.  Folders are only ever collections;
MOVE and COPY apply to files.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from starlette.responses import Response, StreamingResponse

from cloudvault.fs.exceptions import (
    BadRequestError,
    NotFoundError,
    PreconditionFailedError,
    RangeNotSatisfiableError,
    VaultError,
)
from cloudvault.fs.utils import (
    ROOT_FOLDER,
    guess_mime_type,
    parent_folder,
    split_key,
    validate_path,
)
from cloudvault.stores.types import BlobBody, Conditional

from . import xml
from .listing import render_listing
from .paths import file_href, folder_href, is_root_alias, parse_dav_path, parse_destination
from .ranges import content_range, parse_range

if TYPE_CHECKING:
    from starlette.requests import Request

    from cloudvault.fs.registry import FileRegistry, TreeSnapshot
    from cloudvault.models.files import FileRecord

logger = logging.getLogger(__name__)

DAV_METHODS = "OPTIONS, PROPFIND, GET, HEAD, PUT, DELETE, MKCOL, MOVE, COPY"
COLLECTION_CONTENT_TYPE = "httpd/unix-directory"


def _status(code: int, text: str | None = None, headers: dict[str, str] | None = None) -> Response:
    return Response(content=text, status_code=code, headers=headers, media_type="text/plain")


def _check_path(path: str) -> None:
    valid, error = validate_path(path)
    if not valid:
        raise BadRequestError(error)


class WebDAVHandler:
    """Dispatches ``/dav/*`` requests to ``do_<METHOD>`` coroutines."""

    def __init__(self, registry: FileRegistry) -> None:
        self.registry = registry

    async def handle(self, request: Request, path: str) -> Response:
        method = request.method.upper()
        handler = getattr(self, f"do_{method}", None)
        if handler is None:
            return _status(405, "Method Not Allowed", {"Allow": DAV_METHODS})

        dav_path = parse_dav_path(path)
        if is_root_alias(dav_path):
            return _status(400, "Bad Request")
        logger.debug("DAV %s /%s", method, dav_path)
        try:
            return await handler(request, dav_path)
        except RangeNotSatisfiableError as e:
            return _status(416, str(e), {"Content-Range": f"bytes */{e.size}"})
        except VaultError as e:
            return _status(e.status_code, str(e) or None)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _lookup(tree: TreeSnapshot, dav_path: str) -> FileRecord | None:
        folder, name = split_key(dav_path)
        return tree.find_file(folder, name)

    async def _folder_entry(self, multistatus, path: str) -> None:
        record = await self.registry.get_folder_record(path)
        xml.add_response(
            multistatus,
            folder_href(path),
            xml.folder_props(path, record.created_at if record else None),
            True,
        )

    # ------------------------------------------------------------------
    # Methods
    # ------------------------------------------------------------------

    async def do_OPTIONS(self, request: Request, dav_path: str) -> Response:
        return Response(
            status_code=204,
            headers={"Allow": DAV_METHODS, "DAV": "1", "MS-Author-Via": "DAV"},
        )

    async def do_PROPFIND(self, request: Request, dav_path: str) -> Response:
        depth = request.headers.get("depth", "1").strip()
        tree = await self.registry.snapshot()
        multistatus = xml.new_multistatus()

        if not dav_path:
            folder = ROOT_FOLDER
        else:
            record = self._lookup(tree, dav_path)
            if record is not None:
                xml.add_response(multistatus, file_href(record), xml.file_props(record), False)
                return self._multistatus(multistatus)
            if not tree.is_folder(dav_path):
                raise NotFoundError("Not Found")
            folder = dav_path

        await self._folder_entry(multistatus, folder)
        if depth != "0":
            for child in tree.child_files(folder):
                xml.add_response(multistatus, file_href(child), xml.file_props(child), False)
            for sub in tree.child_folders(folder):
                await self._folder_entry(multistatus, sub)
        return self._multistatus(multistatus)

    @staticmethod
    def _multistatus(multistatus) -> Response:
        return Response(
            content=xml.render(multistatus),
            status_code=207,
            media_type=xml.MULTISTATUS_CONTENT_TYPE,
        )

    async def do_GET(self, request: Request, dav_path: str) -> Response:
        tree = await self.registry.snapshot()
        record = self._lookup(tree, dav_path) if dav_path else None
        if record is None:
            folder = dav_path or ROOT_FOLDER
            if not tree.is_folder(folder):
                raise NotFoundError("Not Found")
            if "text/html" in request.headers.get("accept", ""):
                html = render_listing(folder, tree.child_folders(folder), tree.child_files(folder))
                return Response(content=html, media_type="text/html; charset=utf-8")
            return Response(status_code=200)

        headers = {
            "ETag": record.etag,
            "Last-Modified": xml.http_date(record.uploaded_at),
            "Accept-Ranges": "bytes",
        }
        conditional = Conditional.from_headers(request.headers)
        if conditional is not None:
            failed = conditional.evaluate(record.id, record.uploaded_at)
            if failed:
                return Response(status_code=failed, headers=headers)

        head = await self.registry.blobs.head(record.key)
        if head is None:
            raise NotFoundError("Not Found")
        byte_range = parse_range(request.headers.get("range"), head.size)
        body = await self.registry.blobs.get(record.key, range=byte_range)
        if not isinstance(body, BlobBody):
            raise NotFoundError("Not Found")

        headers["Content-Type"] = record.mime_type or head.content_type or guess_mime_type(record.name)
        if byte_range is not None:
            headers["Content-Range"] = content_range(byte_range, head.size)
            headers["Content-Length"] = str(byte_range.length)
            status = 206
        else:
            headers["Content-Length"] = str(head.size)
            status = 200
        return StreamingResponse(body.stream, status_code=status, headers=headers)

    async def do_HEAD(self, request: Request, dav_path: str) -> Response:
        tree = await self.registry.snapshot()
        record = self._lookup(tree, dav_path) if dav_path else None
        if record is None:
            if not tree.is_folder(dav_path or ROOT_FOLDER):
                raise NotFoundError("Not Found")
            return Response(status_code=200, headers={"Content-Type": COLLECTION_CONTENT_TYPE})
        return Response(
            status_code=200,
            headers={
                "Content-Type": record.mime_type or guess_mime_type(record.name),
                "Content-Length": str(record.size),
                "ETag": record.etag,
                "Last-Modified": xml.http_date(record.uploaded_at),
            },
        )

    async def do_PUT(self, request: Request, dav_path: str) -> Response:
        if not dav_path:
            return _status(405, "Cannot PUT to root")
        _check_path(dav_path)
        tree = await self.registry.snapshot()
        if self._lookup(tree, dav_path) is None and tree.is_folder(dav_path):
            return _status(405, "Cannot PUT to a collection")

        folder, name = split_key(dav_path)
        content_type = request.headers.get("content-type") or guess_mime_type(name)
        _, created = await self.registry.store_file(folder, name, request.stream(), content_type)
        return Response(status_code=201 if created else 204)

    async def do_DELETE(self, request: Request, dav_path: str) -> Response:
        if not dav_path:
            return _status(403, "Cannot DELETE root")
        tree = await self.registry.snapshot()
        record = self._lookup(tree, dav_path)
        if record is not None:
            await self.registry.delete_file(record.id)
            return Response(status_code=204)
        if not tree.is_folder(dav_path):
            raise NotFoundError("Not Found")
        await self.registry.delete_folder(dav_path)
        return Response(status_code=204)

    async def do_MKCOL(self, request: Request, dav_path: str) -> Response:
        if not dav_path:
            return _status(405, "Cannot MKCOL root")
        if await request.body():
            return _status(415, "Unsupported Media Type")
        _check_path(dav_path)

        tree = await self.registry.snapshot()
        if self._lookup(tree, dav_path) is not None:
            return _status(409, "Conflict")
        if tree.is_folder(dav_path):
            return _status(405, "Method Not Allowed")
        if not tree.is_folder(parent_folder(dav_path)):
            return _status(409, "Conflict")

        await self.registry.create_folder(dav_path)
        return _status(201, "Created")

    async def do_MOVE(self, request: Request, dav_path: str) -> Response:
        return await self._transfer(request, dav_path, move=True)

    async def do_COPY(self, request: Request, dav_path: str) -> Response:
        return await self._transfer(request, dav_path, move=False)

    async def _transfer(self, request: Request, dav_path: str, *, move: bool) -> Response:
        verb = "MOVE" if move else "COPY"
        if not dav_path:
            return _status(403, f"Cannot {verb} root")
        destination = parse_destination(request.headers.get("destination"))
        if destination is None or is_root_alias(destination):
            return _status(400, "Bad Request")
        _check_path(destination)
        if destination == dav_path:
            return _status(403, "Source and destination are the same")
        overwrite = request.headers.get("overwrite", "T").strip().upper() != "F"

        tree = await self.registry.snapshot()
        record = self._lookup(tree, dav_path)
        if record is None:
            raise NotFoundError("Not Found")

        existing = self._lookup(tree, destination)
        if existing is not None and not overwrite:
            raise PreconditionFailedError(f"Destination exists: {destination}")
        if existing is not None:
            await self.registry.delete_file(existing.id)

        folder, name = split_key(destination)
        if move:
            await self.registry.move_file(record, folder, name)
        else:
            await self.registry.copy_file(record, folder, name)
        return Response(status_code=204 if existing is not None else 201)
