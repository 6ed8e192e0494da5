"""Tests for VaultConfig loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from cloudvault.config import VaultConfig, load_config


class TestDefaults:
    def test_defaults(self):
        config = VaultConfig()
        assert config.blob_backend == "local"
        assert config.metadata_backend == "database"
        assert config.require_auth is True
        assert config.site_name == "CloudVault"

    def test_resolved_database_url(self, tmp_path: Path):
        config = VaultConfig(data_dir=tmp_path)
        assert config.resolved_database_url == f"sqlite+aiosqlite:///{tmp_path / 'vault.db'}"
        assert config.blob_dir == tmp_path / "blobs"

    def test_explicit_database_url_wins(self):
        config = VaultConfig(database_url="sqlite+aiosqlite://")
        assert config.resolved_database_url == "sqlite+aiosqlite://"

    def test_rejects_unknown_backend(self):
        with pytest.raises(ValidationError):
            VaultConfig(blob_backend="s3")


class TestLoadConfig:
    def test_yaml(self, tmp_path: Path):
        path = tmp_path / "vault.yaml"
        path.write_text("site_name: Family Files\nport: 9000\nrequire_auth: false\n")
        config = load_config(path, environ={})
        assert config.site_name == "Family Files"
        assert config.port == 9000
        assert config.require_auth is False

    def test_empty_yaml(self, tmp_path: Path):
        path = tmp_path / "vault.yaml"
        path.write_text("")
        assert load_config(path, environ={}).port == 8787

    def test_yaml_must_be_mapping(self, tmp_path: Path):
        path = tmp_path / "vault.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config(path, environ={})

    def test_env_overrides_yaml(self, tmp_path: Path):
        path = tmp_path / "vault.yaml"
        path.write_text("port: 9000\nadmin_password: from-file\n")
        env = {"CLOUDVAULT_PORT": "9100", "CLOUDVAULT_REQUIRE_AUTH": "false", "OTHER": "x"}
        config = load_config(path, environ=env)
        assert config.port == 9100
        assert config.require_auth is False
        assert config.admin_password == "from-file"

    def test_keyword_overrides_win(self):
        env = {"CLOUDVAULT_HOST": "0.0.0.0"}
        config = load_config(environ=env, host="10.0.0.1", port=None)
        assert config.host == "10.0.0.1"
        assert config.port == 8787

    def test_reads_process_environment(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CLOUDVAULT_SITE_NAME", "Env Vault")
        assert load_config().site_name == "Env Vault"
