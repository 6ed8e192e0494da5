"""Shared fixtures for CloudVault tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from cloudvault import CloudVault
from cloudvault.config import VaultConfig
from cloudvault.stores import DatabaseMetadataStore, MemoryBlobStore, MemoryMetadataStore
from cloudvault.web import create_app

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

ADMIN_PASSWORD = "hunter2"


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    yield eng
    await eng.dispose()


@pytest.fixture
async def db_store(async_engine: AsyncEngine) -> DatabaseMetadataStore:
    """DatabaseMetadataStore with its table created."""
    store = DatabaseMetadataStore(async_engine)
    await store.open()
    return store


@pytest.fixture
def config() -> VaultConfig:
    return VaultConfig(
        admin_password=ADMIN_PASSWORD,
        blob_backend="memory",
        metadata_backend="memory",
    )


@pytest.fixture
async def vault(config: VaultConfig) -> AsyncIterator[CloudVault]:
    """Open vault over in-memory stores."""
    v = CloudVault(MemoryMetadataStore(), MemoryBlobStore(), config=config)
    await v.open()
    yield v
    await v.close()


@pytest.fixture
def registry(vault: CloudVault):
    return vault.registry


@pytest.fixture
def sharing(vault: CloudVault):
    return vault.folder_sharing


@pytest.fixture
async def client(vault: CloudVault) -> AsyncIterator[httpx.AsyncClient]:
    """Unauthenticated HTTP client against the app."""
    app = create_app(vault=vault)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="https://testserver") as c:
        yield c


@pytest.fixture
async def admin(client: httpx.AsyncClient) -> httpx.AsyncClient:
    """The same client after logging in; carries the session cookie."""
    resp = await client.post("/auth/login", json={"password": ADMIN_PASSWORD})
    assert resp.status_code == 200
    return client


@pytest.fixture
def dav_auth() -> httpx.BasicAuth:
    return httpx.BasicAuth("admin", ADMIN_PASSWORD)
