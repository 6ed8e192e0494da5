"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

from cloudvault._vault import CloudVault
from cloudvault.config import VaultConfig, load_config
from cloudvault.fs.exceptions import RangeNotSatisfiableError, VaultError

from . import api, auth, dav, share

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, code: str) -> JSONResponse:
    return JSONResponse({"error": message, "code": code}, status_code=status_code)


def create_app(vault: CloudVault | None = None, config: VaultConfig | None = None) -> FastAPI:
    """Build the HTTP application.

    With no *vault*, one is built from *config* (or :func:`load_config`)
    and opened/closed by the app lifespan.  A vault passed in is owned by
    the caller and must already be open.
    """
    owned = vault is None
    if vault is None:
        vault = CloudVault.from_config(config or load_config())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if owned:
            await vault.open()
        try:
            yield
        finally:
            if owned:
                await vault.close()

    app = FastAPI(title=vault.config.site_name, lifespan=lifespan)
    app.state.vault = vault

    @app.exception_handler(RangeNotSatisfiableError)
    async def range_error(request: Request, exc: RangeNotSatisfiableError) -> PlainTextResponse:
        return PlainTextResponse(
            str(exc), status_code=416, headers={"Content-Range": f"bytes */{exc.size}"}
        )

    @app.exception_handler(VaultError)
    async def vault_error(request: Request, exc: VaultError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed", request.method, request.url.path, exc_info=exc)
        return _error(exc.status_code, str(exc) or exc.code, exc.code)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return _error(400, message, "bad_request")

    app.include_router(dav.router)
    app.include_router(share.router)
    app.include_router(auth.router)
    app.include_router(api.public_router)
    app.include_router(api.router)
    return app
