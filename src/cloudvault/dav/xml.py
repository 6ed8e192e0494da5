"""Multistatus XML for PROPFIND responses."""

from __future__ import annotations

from datetime import UTC, datetime
from email.utils import format_datetime
from typing import TYPE_CHECKING
from xml.etree import ElementTree as ET

from cloudvault.fs.utils import ROOT_FOLDER, folder_basename, guess_mime_type

if TYPE_CHECKING:
    from cloudvault.models.files import FileRecord

XML_DECLARATION = '<?xml version="1.0" encoding="utf-8" ?>\n'
MULTISTATUS_CONTENT_TYPE = "application/xml; charset=utf-8"


def _utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)


def http_date(dt: datetime) -> str:
    """RFC 1123 date, e.g. ``Tue, 15 Nov 1994 08:12:31 GMT``."""
    return format_datetime(_utc(dt), usegmt=True)


def iso_date(dt: datetime) -> str:
    """ISO 8601 with millisecond precision and a ``Z`` suffix."""
    dt = _utc(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def file_props(record: FileRecord) -> dict[str, str]:
    return {
        "displayname": record.name,
        "getcontentlength": str(record.size),
        "getcontenttype": record.mime_type or guess_mime_type(record.name),
        "getlastmodified": http_date(record.uploaded_at),
        "creationdate": iso_date(record.uploaded_at),
        "getetag": record.etag,
    }


def folder_props(path: str, created_at: datetime | None = None) -> dict[str, str]:
    date = created_at or datetime.now(UTC)
    name = "" if path in ("", ROOT_FOLDER) else folder_basename(path)
    return {
        "displayname": name,
        "getlastmodified": http_date(date),
        "creationdate": iso_date(date),
    }


def add_response(
    multistatus: ET.Element, href: str, props: dict[str, str], is_collection: bool
) -> ET.Element:
    """Append one ``D:response`` with a single 200 ``D:propstat``."""
    response = ET.SubElement(multistatus, "D:response")
    ET.SubElement(response, "D:href").text = href
    propstat = ET.SubElement(response, "D:propstat")
    prop = ET.SubElement(propstat, "D:prop")
    for name, value in props.items():
        ET.SubElement(prop, f"D:{name}").text = value
    resourcetype = ET.SubElement(prop, "D:resourcetype")
    if is_collection:
        ET.SubElement(resourcetype, "D:collection")
    ET.SubElement(propstat, "D:status").text = "HTTP/1.1 200 OK"
    return response


def new_multistatus() -> ET.Element:
    root = ET.Element("D:multistatus")
    root.set("xmlns:D", "DAV:")
    return root


def render(multistatus: ET.Element) -> bytes:
    return (XML_DECLARATION + ET.tostring(multistatus, encoding="unicode")).encode("utf-8")
