"""Mapping between ``/dav/`` URLs and vault paths."""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import quote, unquote, urlsplit

from cloudvault.fs.utils import ROOT_FOLDER

if TYPE_CHECKING:
    from cloudvault.models.files import FileRecord

DAV_PREFIX = "/dav/"

# Characters JavaScript's encodeURI leaves alone, minus '#' and '?'
_HREF_SAFE = "/;,:@&=+$-_.!~*'()"


def parse_dav_path(path: str) -> str:
    """Normalize a decoded path below the mount.  The mount root is ``""``.

    Examples:
        parse_dav_path("docs/report.pdf") -> "docs/report.pdf"
        parse_dav_path("docs/") -> "docs"
        parse_dav_path("") -> ""
    """
    return path.strip("/")


def is_root_alias(path: str) -> bool:
    """True when the first segment of *path* is the ``root`` folder sentinel."""
    return path.split("/", 1)[0] == ROOT_FOLDER


def parse_destination(header: str | None) -> str | None:
    """Vault path named by a ``Destination`` header, or ``None`` if outside the mount.

    Accepts absolute URLs and bare paths.  The mount root itself is not a
    valid destination.
    """
    if not header:
        return None
    parts = urlsplit(header.strip())
    raw = parts.path if parts.scheme else header.strip()
    decoded = unquote(raw)
    if not decoded.startswith(DAV_PREFIX):
        return None
    dest = decoded[len(DAV_PREFIX) :].strip("/")
    return dest or None


def folder_href(path: str) -> str:
    if not path or path == ROOT_FOLDER:
        return DAV_PREFIX
    return DAV_PREFIX + quote(path, safe=_HREF_SAFE) + "/"


def file_href(record: FileRecord) -> str:
    return DAV_PREFIX + quote(record.path, safe=_HREF_SAFE)
