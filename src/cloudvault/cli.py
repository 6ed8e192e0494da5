"""Command line entry point.

Usage:
    cloudvault serve --config vault.yaml
    cloudvault serve --host 0.0.0.0 --port 9000
    cloudvault reconcile-stats --config vault.yaml
    cloudvault import ./photos --folder photos
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import uvicorn

from cloudvault._vault import CloudVault
from cloudvault.config import VaultConfig, load_config
from cloudvault.fs.utils import ROOT_FOLDER, validate_folder
from cloudvault.web import create_app

logger = logging.getLogger(__name__)


def _configure_logging(config: VaultConfig) -> None:
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _serve(config: VaultConfig) -> int:
    if config.require_auth and not config.admin_password:
        logger.warning("No admin password configured; the API and WebDAV are locked")
    logger.info("Serving %s on http://%s:%d", config.site_name, config.host, config.port)
    uvicorn.run(
        create_app(config=config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )
    return 0


SKIP_DIRS = {".git", ".venv", "__pycache__", "node_modules"}


def collect_files(root: Path) -> list[Path]:
    """Regular files under *root*, sorted, skipping hidden files and tool directories."""
    found = []
    for p in sorted(root.rglob("*")):
        relative = p.relative_to(root)
        if any(part in SKIP_DIRS or part.startswith(".") for part in relative.parts):
            continue
        if p.is_file():
            found.append(p)
    return found


async def import_directory(vault: CloudVault, root: Path, folder: str) -> int:
    """Upload every file under *root* into *folder*, mirroring subdirectories."""
    count = 0
    for path in collect_files(root):
        relative = path.relative_to(root)
        parent = "/".join(relative.parts[:-1])
        base = "" if folder == ROOT_FOLDER else folder
        target = "/".join(p for p in (base, parent) if p)
        data = await asyncio.to_thread(path.read_bytes)
        await vault.registry.store_file(target or ROOT_FOLDER, path.name, data)
        count += 1
        logger.debug("Imported %s", relative)
    return count


async def _import(config: VaultConfig, source: str, folder: str) -> int:
    root = Path(source)
    if not root.is_dir():
        print(f"error: {source} is not a directory", file=sys.stderr)
        return 1
    async with CloudVault.from_config(config) as vault:
        count = await import_directory(vault, root, validate_folder(folder))
    print(f"Imported {count} files")
    return 0


async def _reconcile(config: VaultConfig) -> int:
    async with CloudVault.from_config(config) as vault:
        files, size = await vault.reconcile_stats()
    print(f"{files} files, {size} bytes")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cloudvault", description="CloudVault file server")
    parser.add_argument("--config", help="YAML config file")
    parser.add_argument("--data-dir", dest="data_dir")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP and WebDAV server")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)

    sub.add_parser("reconcile-stats", help="Recompute file and size counters")

    imp = sub.add_parser("import", help="Upload a local directory into the vault")
    imp.add_argument("source")
    imp.add_argument("--folder", default=ROOT_FOLDER)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    overrides = {
        "host": getattr(args, "host", None),
        "port": getattr(args, "port", None),
        "data_dir": getattr(args, "data_dir", None),
    }
    config = load_config(args.config, **overrides)
    _configure_logging(config)

    if args.command == "serve":
        return _serve(config)
    if args.command == "import":
        return asyncio.run(_import(config, args.source, args.folder))
    return asyncio.run(_reconcile(config))


if __name__ == "__main__":
    sys.exit(main())
