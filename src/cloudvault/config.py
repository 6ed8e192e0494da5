"""VaultConfig — settings loaded from YAML and ``CLOUDVAULT_*`` environment variables."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ENV_PREFIX = "CLOUDVAULT_"


class VaultConfig(BaseModel):
    """Runtime configuration for a CloudVault server."""

    data_dir: Path = Path("./vault-data")
    database_url: str | None = None
    blob_backend: Literal["local", "memory"] = "local"
    metadata_backend: Literal["database", "memory"] = "database"

    admin_password: str = ""
    require_auth: bool = True
    session_ttl_seconds: int = Field(default=7 * 24 * 60 * 60, gt=0)
    share_cookie_max_age: int = Field(default=24 * 60 * 60, gt=0)
    share_password_salt: str = "cloudvault-share-salt"

    site_name: str = "CloudVault"
    host: str = "127.0.0.1"
    port: int = 8787
    log_level: str = "INFO"

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite+aiosqlite:///{self.data_dir / 'vault.db'}"

    @property
    def blob_dir(self) -> Path:
        return self.data_dir / "blobs"


def _env_overrides(environ: dict[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for name in VaultConfig.model_fields:
        value = environ.get(ENV_PREFIX + name.upper())
        if value is not None:
            overrides[name] = value
    return overrides


def load_config(
    path: str | Path | None = None,
    environ: dict[str, str] | None = None,
    **overrides: Any,
) -> VaultConfig:
    """Build a config from an optional YAML file, then env vars, then *overrides*.

    Later sources win.  Values from the environment are strings and are
    coerced by pydantic validation.
    """
    data: dict[str, Any] = {}
    if path is not None:
        with open(path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        data.update(loaded)
        logger.debug("Loaded config from %s", path)

    data.update(_env_overrides(dict(os.environ) if environ is None else environ))
    data.update({k: v for k, v in overrides.items() if v is not None})
    return VaultConfig.model_validate(data)
