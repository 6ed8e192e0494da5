"""Admin login and logout."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse

from cloudvault.auth import SESSION_COOKIE, verify_admin_password
from cloudvault.fs.exceptions import BadRequestError, UnauthorizedError

from .deps import VaultDep, read_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login")
async def login(request: Request, vault: VaultDep) -> JSONResponse:
    password = await read_password(request)
    if not password:
        raise BadRequestError("Password required")
    if not verify_admin_password(password, vault.config.admin_password):
        logger.info("Failed admin login from %s", request.client.host if request.client else "-")
        raise UnauthorizedError("Invalid password")

    session = await vault.sessions.create()
    response = JSONResponse({"message": "ok"})
    response.headers.append("Set-Cookie", vault.sessions.cookie_header(session.id))
    return response


@router.api_route("/logout", methods=["GET", "POST"])
async def logout(request: Request, vault: VaultDep) -> RedirectResponse:
    await vault.sessions.destroy(request.cookies.get(SESSION_COOKIE))
    response = RedirectResponse("/", status_code=302)
    response.headers.append("Set-Cookie", vault.sessions.clear_cookie_header())
    return response
