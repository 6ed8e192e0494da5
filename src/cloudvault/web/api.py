"""JSON API under ``/api``.

Admin routes require a session; ``/api/public/*`` lists effectively shared
folders for guests.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any
from urllib.parse import unquote

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.responses import Response

from cloudvault.fs.exceptions import BadRequestError, NotFoundError
from cloudvault.fs.registry import content_disposition
from cloudvault.fs.sharing import is_folder_shared
from cloudvault.fs.utils import (
    ROOT_FOLDER,
    guess_mime_type,
    make_blob_key,
    normalize_folder,
    validate_folder,
    validate_name,
)
from cloudvault.stores.types import UploadedPart

from .deps import VaultDep, require_session
from .responses import disposition, file_json, link_json, stream_file
from .schemas import (
    CompleteUploadRequest,
    CreateFolderLinkRequest,
    CreateFolderRequest,
    CreateShareRequest,
    FileIdsRequest,
    FolderPathRequest,
    MoveFilesRequest,
    RenameFileRequest,
    RenameFolderRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"], dependencies=[Depends(require_session)])
public_router = APIRouter(prefix="/api/public", tags=["public"])


def _folder_path(parent: str, name: str) -> str:
    parent = validate_folder(parent)
    name = validate_name(name)
    return name if parent == ROOT_FOLDER else f"{parent}/{name}"


# =============================================================================
# Files
# =============================================================================


@router.get("/files")
async def list_files(
    vault: VaultDep, folder: str | None = None, search: str | None = None
) -> dict[str, Any]:
    wanted = validate_folder(folder) if folder else None
    needle = search.lower() if search else None

    def matches(record) -> bool:
        if wanted is not None and record.folder != wanted:
            return False
        return needle is None or needle in record.name.lower()

    files = await vault.registry.list_files(matches)
    files.sort(key=lambda f: f.uploaded_at, reverse=True)
    return {
        "files": [file_json(f) for f in files],
        "cursor": None,
        "total_files": len(files),
    }


@router.api_route("/files/upload", methods=["POST", "PUT"], status_code=201)
async def upload(
    request: Request,
    vault: VaultDep,
    action: str | None = None,
    upload_id: str | None = Query(default=None, alias="uploadId"),
    part_number: int | None = Query(default=None, alias="partNumber", ge=1),
    key: str | None = None,
) -> Response:
    if action == "mpu-create":
        name = validate_name(unquote(request.headers.get("x-file-name", "")))
        folder = validate_folder(request.headers.get("x-folder", ROOT_FOLDER))
        blob_key = make_blob_key(folder, name)
        new_id = await vault.blobs.create_multipart_upload(
            blob_key,
            content_type=request.headers.get("content-type") or guess_mime_type(name),
            content_disposition=content_disposition(name),
        )
        return JSONResponse({"upload_id": new_id, "key": blob_key})

    if action == "mpu-upload":
        if not upload_id or part_number is None or not key:
            raise BadRequestError("Missing uploadId, partNumber, or key")
        part = await vault.blobs.upload_part(key, upload_id, part_number, request.stream())
        return JSONResponse({"part_number": part.part_number, "etag": part.etag})

    if action == "mpu-complete":
        try:
            body = CompleteUploadRequest.model_validate(await request.json())
        except (ValueError, ValidationError) as e:
            raise BadRequestError("Invalid multipart completion body") from e
        parts = [UploadedPart(p.part_number, p.etag) for p in body.parts]
        obj = await vault.blobs.complete_multipart_upload(body.key, body.upload_id, parts)
        record = await vault.registry.register_blob(obj)
        logger.info("Completed multipart upload %s", body.key)
        return JSONResponse(file_json(record), status_code=201)

    if action:
        raise BadRequestError(f"Unknown action: {action}")

    name = unquote(request.headers.get("x-file-name") or "untitled")
    folder = request.headers.get("x-folder") or ROOT_FOLDER
    content_type = request.headers.get("content-type") or None
    record, _ = await vault.registry.store_file(folder, name, request.stream(), content_type)
    return JSONResponse(file_json(record), status_code=201)


@router.post("/files/delete")
async def delete_files(body: FileIdsRequest, vault: VaultDep) -> dict[str, int]:
    return {"deleted": await vault.registry.delete_files(body.ids)}


@router.post("/files/move")
async def move_files(body: MoveFilesRequest, vault: VaultDep) -> dict[str, Any]:
    result = await vault.registry.move_files(body.ids, body.target)
    return asdict(result)


@router.get("/files/{file_id}")
async def get_file(file_id: str, vault: VaultDep) -> dict[str, Any]:
    return file_json(await vault.registry.require_file(file_id))


@router.put("/files/{file_id}")
async def rename_file(file_id: str, body: RenameFileRequest, vault: VaultDep) -> dict[str, Any]:
    return file_json(await vault.registry.rename_file(file_id, body.name))


@router.delete("/files/{file_id}")
async def delete_file(file_id: str, vault: VaultDep) -> dict[str, int]:
    await vault.registry.delete_file(file_id)
    return {"deleted": 1}


@router.get("/files/{file_id}/download")
async def download_file(file_id: str, request: Request, vault: VaultDep) -> Response:
    record = await vault.registry.require_file(file_id)
    return await stream_file(
        vault.blobs,
        record,
        request,
        headers={"Content-Disposition": disposition("attachment", record.name)},
    )


# =============================================================================
# Folders
# =============================================================================


@router.get("/folders")
async def list_folders(vault: VaultDep) -> dict[str, Any]:
    return {"folders": [asdict(info) for info in await vault.registry.list_folders()]}


@router.post("/folders", status_code=201)
async def create_folder(body: CreateFolderRequest, vault: VaultDep) -> dict[str, str]:
    path = _folder_path(body.parent, body.name)
    await vault.registry.ensure_folder_chain(path)
    return {"folder": path}


@router.put("/folders")
async def rename_folder(body: RenameFolderRequest, vault: VaultDep) -> dict[str, Any]:
    return asdict(await vault.registry.rename_folder(body.old_path, body.new_path))


@router.delete("/folders")
async def delete_folder(vault: VaultDep, path: str = Query(min_length=1)) -> dict[str, Any]:
    return asdict(await vault.registry.delete_folder(path))


@router.post("/folders/share")
async def toggle_folder_share(body: FolderPathRequest, vault: VaultDep) -> dict[str, Any]:
    shared = await vault.folder_sharing.toggle_folder_share(body.path)
    return {"path": normalize_folder(body.path), "shared": shared}


@router.post("/folders/exclude")
async def toggle_folder_exclude(body: FolderPathRequest, vault: VaultDep) -> dict[str, Any]:
    excluded = await vault.folder_sharing.toggle_folder_exclude(body.path)
    return {"path": normalize_folder(body.path), "excluded": excluded}


@router.get("/folders/shared")
async def shared_folders(vault: VaultDep) -> dict[str, list[str]]:
    return {"folders": await vault.folder_sharing.list_shared_folders()}


# =============================================================================
# File shares
# =============================================================================


@router.post("/share")
async def create_share(body: CreateShareRequest, vault: VaultDep) -> dict[str, Any]:
    grant = await vault.file_shares.create_share(
        body.file_id, body.password, body.expires_in_days
    )
    return {
        "token": grant.token,
        "url": f"/s/{grant.token}",
        "expires_at": grant.expires_at.isoformat() if grant.expires_at else None,
        "has_password": grant.has_password,
    }


@router.get("/share/{file_id}")
async def get_share(file_id: str, vault: VaultDep) -> dict[str, Any]:
    grant = await vault.file_shares.get_share_info(file_id)
    data = asdict(grant)
    data["expires_at"] = grant.expires_at.isoformat() if grant.expires_at else None
    return data


@router.delete("/share/{file_id}")
async def revoke_share(file_id: str, vault: VaultDep) -> dict[str, str]:
    await vault.file_shares.revoke_share(file_id)
    return {"message": "Share revoked"}


# =============================================================================
# Folder share links
# =============================================================================


@router.post("/folder-share-link")
async def create_folder_link(body: CreateFolderLinkRequest, vault: VaultDep) -> dict[str, Any]:
    if not await vault.registry.folder_exists(body.path):
        raise NotFoundError("Folder not found")
    link = await vault.folder_sharing.create_folder_share_link(
        body.path, body.password, body.expires_in_days
    )
    return link_json(link)


@router.get("/folder-share-link/{path:path}")
async def get_folder_link(path: str, vault: VaultDep) -> dict[str, Any]:
    link = await vault.folder_sharing.get_folder_share_link_info(path)
    if link is None:
        raise NotFoundError("No share link for this folder")
    return link_json(link)


@router.delete("/folder-share-link/{path:path}")
async def revoke_folder_link(path: str, vault: VaultDep) -> dict[str, bool]:
    return {"revoked": await vault.folder_sharing.revoke_folder_share_link(path)}


# =============================================================================
# Stats
# =============================================================================


@router.get("/stats")
async def stats(vault: VaultDep) -> dict[str, Any]:
    summary = await vault.get_stats()
    return {
        "total_files": summary.total_files,
        "total_size": summary.total_size,
        "total_downloads": summary.total_downloads,
        "recent_uploads": [file_json(f) for f in summary.recent_uploads],
        "top_downloaded": [file_json(f) for f in summary.top_downloaded],
    }


# =============================================================================
# Public listing
# =============================================================================


@public_router.get("/shared")
async def public_shared(vault: VaultDep) -> dict[str, list[str]]:
    tree = await vault.registry.snapshot()
    flags = await vault.folder_sharing.load_flags()
    return {"folders": vault.folder_sharing.public_roots(tree, flags)}


@public_router.get("/folder")
async def public_folder(vault: VaultDep, path: str = Query(min_length=1)) -> dict[str, Any]:
    tree = await vault.registry.snapshot()
    flags = await vault.folder_sharing.load_flags()
    result = vault.folder_sharing.browse_public_folder(path, tree, flags)
    return {
        "folder": result.folder,
        "files": [file_json(f) for f in result.files],
        "subfolders": result.subfolders,
    }


@public_router.get("/download/{file_id}")
async def public_download(file_id: str, request: Request, vault: VaultDep) -> Response:
    record = await vault.registry.get_file(file_id)
    if record is None:
        raise NotFoundError("File not found")
    flags = await vault.folder_sharing.load_flags()
    if not is_folder_shared(record.folder, flags.shared, flags.excluded):
        raise NotFoundError("File not found")
    return await stream_file(
        vault.blobs,
        record,
        request,
        headers={"Content-Disposition": disposition("attachment", record.name)},
    )
