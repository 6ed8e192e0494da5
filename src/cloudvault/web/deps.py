"""FastAPI dependencies: the vault, session auth and credential parsing."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Annotated

from fastapi import Depends, Request

from cloudvault._vault import CloudVault
from cloudvault.auth import SESSION_COOKIE, verify_admin_password
from cloudvault.fs.exceptions import UnauthorizedError, UnsupportedMediaTypeError

logger = logging.getLogger(__name__)


def get_vault(request: Request) -> CloudVault:
    return request.app.state.vault


VaultDep = Annotated[CloudVault, Depends(get_vault)]


async def has_session(request: Request, vault: CloudVault) -> bool:
    return await vault.sessions.validate(request.cookies.get(SESSION_COOKIE))


async def require_session(request: Request, vault: VaultDep) -> None:
    """Gate for admin routes.  Passes everything when ``require_auth`` is off."""
    if not vault.config.require_auth:
        return
    if not await has_session(request, vault):
        raise UnauthorizedError("Unauthorized")


def basic_auth_password(header: str | None) -> str | None:
    """Password from an ``Authorization: Basic`` header; the username is ignored."""
    if not header:
        return None
    scheme, _, encoded = header.partition(" ")
    if scheme.lower() != "basic" or not encoded:
        return None
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    _, sep, password = decoded.partition(":")
    return password if sep else None


async def dav_authorized(request: Request, vault: CloudVault) -> bool:
    """WebDAV clients authenticate with Basic auth or a browser session."""
    if not vault.config.require_auth:
        return True
    password = basic_auth_password(request.headers.get("authorization"))
    if password is not None and verify_admin_password(password, vault.config.admin_password):
        return True
    return await has_session(request, vault)


async def read_password(request: Request) -> str:
    """The ``password`` field of a form or JSON body."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        value = form.get("password")
    elif content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            body = None
        value = body.get("password") if isinstance(body, dict) else None
    else:
        raise UnsupportedMediaTypeError("Unsupported content type")
    return value if isinstance(value, str) else ""
