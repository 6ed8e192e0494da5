"""Mounts the WebDAV handler at ``/dav``."""

from __future__ import annotations

from fastapi import APIRouter, Request
from starlette.responses import Response

from .deps import VaultDep, dav_authorized

router = APIRouter(tags=["dav"])

# Methods routed to the handler.  Anything it has no ``do_*`` for gets a 405
# with the DAV ``Allow`` list.
ROUTED_METHODS = [
    "OPTIONS",
    "PROPFIND",
    "PROPPATCH",
    "GET",
    "HEAD",
    "PUT",
    "DELETE",
    "MKCOL",
    "MOVE",
    "COPY",
    "LOCK",
    "UNLOCK",
    "POST",
]


async def _dispatch(request: Request, vault, path: str) -> Response:
    if request.method != "OPTIONS" and not await dav_authorized(request, vault):
        return Response(
            "Unauthorized",
            status_code=401,
            media_type="text/plain",
            headers={"WWW-Authenticate": f'Basic realm="{vault.config.site_name}"'},
        )
    return await vault.dav.handle(request, path)


@router.api_route("/dav", methods=ROUTED_METHODS, include_in_schema=False)
async def dav_root(request: Request, vault: VaultDep) -> Response:
    return await _dispatch(request, vault, "")


@router.api_route("/dav/{path:path}", methods=ROUTED_METHODS, include_in_schema=False)
async def dav(path: str, request: Request, vault: VaultDep) -> Response:
    return await _dispatch(request, vault, path)
