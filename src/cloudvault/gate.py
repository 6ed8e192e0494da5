"""ShareGate — resolves public share tokens and gates access to shared content.

A token names either a single file (``share:{token}``) or a folder subtree
(``foldersharelink:{token}``); file tokens are tried first.  Resolution
yields exactly one state, checked in order: invalid, expired,
password required, ok.  A password is proven once per token by a
``share_{token}=verified`` cookie scoped to ``/s/{token}``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from cloudvault.fs.exceptions import (
    BadRequestError,
    NotFoundError,
    ShareAccessDeniedError,
    UnauthorizedError,
)
from cloudvault.fs.sharing import verify_share_password
from cloudvault.fs.utils import is_same_or_descendant

if TYPE_CHECKING:
    from cloudvault.fs.registry import FileRegistry
    from cloudvault.fs.sharing import FileShareService, FolderSharingService
    from cloudvault.fs.types import FolderBrowseResult
    from cloudvault.models.files import FileRecord
    from cloudvault.models.shares import FolderShareLink

logger = logging.getLogger(__name__)

SHARE_COOKIE_VALUE = "verified"
DEFAULT_COOKIE_MAX_AGE = 24 * 60 * 60

EXPIRED_MESSAGE = "This share link has expired."
INVALID_MESSAGE = "This share link is invalid or has been revoked."


class ShareKind(str, Enum):
    FILE = "file"
    FOLDER = "folder"


class ShareState(str, Enum):
    INVALID = "invalid"
    EXPIRED = "expired"
    PASSWORD_REQUIRED = "password_required"
    OK = "ok"


@dataclass
class ShareResolution:
    """Outcome of resolving a share token."""

    token: str
    state: ShareState
    kind: ShareKind | None = None
    file: FileRecord | None = None
    link: FolderShareLink | None = None

    @property
    def ok(self) -> bool:
        return self.state is ShareState.OK

    @property
    def message(self) -> str | None:
        if self.state is ShareState.INVALID:
            return INVALID_MESSAGE
        if self.state is ShareState.EXPIRED:
            return EXPIRED_MESSAGE
        return None


@dataclass
class ShareCookie:
    """The cookie proving a share password was entered."""

    token: str
    max_age: int = DEFAULT_COOKIE_MAX_AGE

    @property
    def name(self) -> str:
        return share_cookie_name(self.token)

    @property
    def value(self) -> str:
        return SHARE_COOKIE_VALUE

    @property
    def path(self) -> str:
        return f"/s/{self.token}"

    def header(self) -> str:
        """Full ``Set-Cookie`` header value."""
        return (
            f"{self.name}={self.value}; Path={self.path}; HttpOnly; Secure; "
            f"SameSite=Lax; Max-Age={self.max_age}"
        )


def share_cookie_name(token: str) -> str:
    return f"share_{token}"


def has_share_cookie(token: str, cookies: Mapping[str, str]) -> bool:
    return cookies.get(share_cookie_name(token)) == SHARE_COOKIE_VALUE


class ShareGate:
    """Access decisions for the public ``/s/{token}`` routes."""

    def __init__(
        self,
        registry: FileRegistry,
        folder_sharing: FolderSharingService,
        file_shares: FileShareService,
        *,
        cookie_max_age: int = DEFAULT_COOKIE_MAX_AGE,
    ) -> None:
        self.registry = registry
        self.folder_sharing = folder_sharing
        self.file_shares = file_shares
        self.cookie_max_age = cookie_max_age

    async def resolve(self, token: str, cookies: Mapping[str, str]) -> ShareResolution:
        record = await self.file_shares.resolve_share_token(token)
        if record is not None:
            if record.share_expired():
                state = ShareState.EXPIRED
            elif record.share_password and not has_share_cookie(token, cookies):
                state = ShareState.PASSWORD_REQUIRED
            else:
                state = ShareState.OK
            return ShareResolution(token=token, state=state, kind=ShareKind.FILE, file=record)

        link = await self.folder_sharing.resolve_folder_share_token(token)
        if link is None:
            return ShareResolution(token=token, state=ShareState.INVALID)
        if link.is_expired():
            state = ShareState.EXPIRED
        elif link.password_hash and not has_share_cookie(token, cookies):
            state = ShareState.PASSWORD_REQUIRED
        else:
            state = ShareState.OK
        return ShareResolution(token=token, state=state, kind=ShareKind.FOLDER, link=link)

    async def stored_password_hash(self, token: str) -> str | None:
        """Password hash guarding *token*, or ``None`` if unprotected or unknown."""
        record = await self.file_shares.resolve_share_token(token)
        if record is not None:
            return record.share_password
        link = await self.folder_sharing.resolve_folder_share_token(token)
        return link.password_hash if link is not None else None

    async def verify_password(self, token: str, password: str) -> ShareCookie | None:
        """Check *password* against the share behind *token*.

        Returns ``None`` when the token carries no password (the caller just
        redirects back to the share page).  Raises ``UnauthorizedError`` on a
        wrong password.
        """
        stored = await self.stored_password_hash(token)
        if not stored:
            return None
        if not verify_share_password(password or "", stored, self.file_shares.salt):
            logger.info("Wrong password for share %s", token)
            raise UnauthorizedError("Invalid password")
        return ShareCookie(token=token, max_age=self.cookie_max_age)

    async def authorize_file(self, token: str, cookies: Mapping[str, str]) -> FileRecord:
        """The file behind a file token, for download and preview."""
        record = await self.file_shares.resolve_share_token(token)
        if record is None or record.share_expired():
            raise NotFoundError("Share link invalid or expired")
        if record.share_password and not has_share_cookie(token, cookies):
            raise ShareAccessDeniedError("Password required")
        return record

    async def authorize_folder(self, token: str, cookies: Mapping[str, str]) -> FolderShareLink:
        link = await self.folder_sharing.resolve_folder_share_token(token)
        if link is None:
            raise NotFoundError("Share link invalid")
        if link.is_expired():
            raise NotFoundError("Share link expired")
        if link.password_hash and not has_share_cookie(token, cookies):
            raise ShareAccessDeniedError("Password required")
        return link

    async def authorize_folder_file(
        self, token: str, cookies: Mapping[str, str], file_id: str | None
    ) -> FileRecord:
        """A file inside the subtree of a folder link."""
        link = await self.authorize_folder(token, cookies)
        if not file_id:
            raise BadRequestError("fileId required")
        record = await self.registry.get_file(file_id)
        if record is None:
            raise NotFoundError("File not found")
        if not is_same_or_descendant(record.folder, link.folder):
            raise ShareAccessDeniedError("File not in shared folder")
        return record

    async def record_download(self, record: FileRecord) -> FileRecord:
        """Increment the download counter on the freshest copy of *record*."""
        current = await self.registry.get_file(record.id) or record
        current.downloads += 1
        await self.registry.save_file(current)
        return current

    async def browse(self, link: FolderShareLink, subpath: str | None) -> FolderBrowseResult:
        tree = await self.registry.snapshot()
        return self.folder_sharing.browse_folder_share_link(link.folder, subpath, tree)
