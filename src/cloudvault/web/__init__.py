"""HTTP surface: WebDAV, share pages, JSON API and login."""

from cloudvault.web.app import create_app

__all__ = ["create_app"]
