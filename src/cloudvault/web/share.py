"""Public share routes under ``/s/{token}``.

No session is needed here; every route goes through the ShareGate.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from starlette.responses import Response

from cloudvault import templates
from cloudvault.fs.utils import folder_basename, preview_type
from cloudvault.gate import ShareKind, ShareResolution

from .deps import VaultDep, read_password
from .responses import PREVIEW_CACHE_CONTROL, disposition, file_json, stream_file

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/s", tags=["share"])

FileIdQuery = Query(default=None, alias="fileId")


async def _page_data(vault, resolution: ShareResolution, subpath: str | None) -> dict[str, Any]:
    if not resolution.ok:
        if resolution.message:
            return {"error": resolution.message}
        return {"needsPassword": True, "isFolder": resolution.kind is ShareKind.FOLDER}

    if resolution.kind is ShareKind.FILE:
        record = resolution.file
        return {
            "id": record.id,
            "name": record.name,
            "size": record.size,
            "mimeType": record.mime_type,
            "previewType": preview_type(record.name, record.mime_type),
            "uploadedAt": record.uploaded_at.isoformat(),
            "downloads": record.downloads,
        }

    link = resolution.link
    browse = await vault.gate.browse(link, subpath)
    return {
        "isFolder": True,
        "folderName": folder_basename(link.folder),
        "path": browse.path,
        "files": [file_json(f) for f in browse.files],
        "subfolders": [folder_basename(s) for s in browse.subfolders],
    }


@router.get("/{token}", response_class=HTMLResponse)
async def share_page(token: str, request: Request, vault: VaultDep, path: str | None = None):
    resolution = await vault.gate.resolve(token, request.cookies)
    data = await _page_data(vault, resolution, path)
    html = templates.render(
        "share.html", data=data, token=token, site_name=vault.config.site_name
    )
    return HTMLResponse(html)


@router.post("/{token}/verify")
async def verify(token: str, request: Request, vault: VaultDep) -> Response:
    redirect = RedirectResponse(f"/s/{token}", status_code=302)
    if not await vault.gate.stored_password_hash(token):
        return redirect
    password = await read_password(request)
    cookie = await vault.gate.verify_password(token, password)
    if cookie is not None:
        redirect.headers.append("Set-Cookie", cookie.header())
    return redirect


@router.get("/{token}/download")
async def download(token: str, request: Request, vault: VaultDep) -> Response:
    record = await vault.gate.authorize_file(token, request.cookies)
    response = await stream_file(
        vault.blobs,
        record,
        request,
        headers={"Content-Disposition": disposition("attachment", record.name)},
    )
    await vault.gate.record_download(record)
    return response


@router.get("/{token}/preview")
async def preview(token: str, request: Request, vault: VaultDep) -> Response:
    record = await vault.gate.authorize_file(token, request.cookies)
    return await stream_file(
        vault.blobs,
        record,
        request,
        headers={
            "Content-Disposition": disposition("inline", record.name),
            "Cache-Control": PREVIEW_CACHE_CONTROL,
        },
    )


@router.get("/{token}/folder-download")
async def folder_download(
    token: str, request: Request, vault: VaultDep, file_id: str | None = FileIdQuery
) -> Response:
    record = await vault.gate.authorize_folder_file(token, request.cookies, file_id)
    response = await stream_file(
        vault.blobs,
        record,
        request,
        headers={"Content-Disposition": disposition("attachment", record.name)},
    )
    await vault.gate.record_download(record)
    return response


@router.get("/{token}/folder-preview")
async def folder_preview(
    token: str, request: Request, vault: VaultDep, file_id: str | None = FileIdQuery
) -> Response:
    record = await vault.gate.authorize_folder_file(token, request.cookies, file_id)
    return await stream_file(
        vault.blobs,
        record,
        request,
        headers={
            "Content-Disposition": disposition("inline", record.name),
            "Cache-Control": PREVIEW_CACHE_CONTROL,
        },
    )
