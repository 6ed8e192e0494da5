"""Browser-friendly HTML listing for DAV collections."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cloudvault.fs.utils import ROOT_FOLDER, folder_basename, parent_folder
from cloudvault.templates import render

from .paths import file_href, folder_href
from .xml import iso_date

if TYPE_CHECKING:
    from cloudvault.models.files import FileRecord


def render_listing(path: str, folders: list[str], files: list[FileRecord]) -> str:
    """Parent link, child folders, then files sorted by name."""
    is_root = path in ("", ROOT_FOLDER)
    return render(
        "listing.html",
        title="/" if is_root else f"/{path}/",
        parent_href=None if is_root else folder_href(parent_folder(path)),
        folders=[{"name": folder_basename(f), "href": folder_href(f)} for f in folders],
        files=[
            {
                "name": f.name,
                "href": file_href(f),
                "size": f.size,
                "modified": iso_date(f.uploaded_at)[:16].replace("T", " "),
            }
            for f in sorted(files, key=lambda f: f.name)
        ],
    )
