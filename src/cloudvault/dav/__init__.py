"""WebDAV protocol layer mounted at ``/dav/``."""

from cloudvault.dav.handler import DAV_METHODS, WebDAVHandler
from cloudvault.dav.paths import DAV_PREFIX, parse_destination
from cloudvault.dav.ranges import parse_range

__all__ = ["DAV_METHODS", "DAV_PREFIX", "WebDAVHandler", "parse_destination", "parse_range"]
