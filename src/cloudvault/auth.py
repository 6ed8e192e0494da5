"""Admin sessions: login, validation and logout."""

from __future__ import annotations

import hashlib
import hmac
import logging
import uuid
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from pydantic import ValidationError

from cloudvault.fs.keys import session_key
from cloudvault.models.shares import Session

if TYPE_CHECKING:
    from cloudvault.stores.protocol import MetadataStore

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"
DEFAULT_SESSION_TTL = 7 * 24 * 60 * 60


def _digest(value: str) -> bytes:
    return hashlib.sha256(value.encode()).hexdigest().encode()


def verify_admin_password(candidate: str, admin_password: str) -> bool:
    """Constant-time comparison of hashed passwords.  An unset admin password never matches."""
    if not admin_password:
        return False
    return hmac.compare_digest(_digest(candidate or ""), _digest(admin_password))


class SessionService:
    """Sessions stored at ``session:{id}`` with an absolute expiry."""

    def __init__(self, metadata: MetadataStore, *, ttl_seconds: int = DEFAULT_SESSION_TTL) -> None:
        self.metadata = metadata
        self.ttl_seconds = ttl_seconds

    async def create(self) -> Session:
        now = datetime.now(UTC)
        session = Session(
            id=str(uuid.uuid4()),
            created_at=now,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
        )
        await self.metadata.put(session_key(session.id), session.model_dump_json())
        logger.info("Created session %s", session.id)
        return session

    async def validate(self, session_id: str | None) -> bool:
        """True for a known, unexpired session.  Expired sessions are deleted."""
        if not session_id:
            return False
        raw = await self.metadata.get(session_key(session_id))
        if raw is None:
            return False
        try:
            session = Session.model_validate_json(raw)
        except ValidationError:
            logger.warning("Dropping corrupt session %s", session_id, exc_info=True)
            await self.metadata.delete(session_key(session_id))
            return False
        if session.is_expired():
            await self.metadata.delete(session_key(session_id))
            return False
        return True

    async def destroy(self, session_id: str | None) -> None:
        if session_id:
            await self.metadata.delete(session_key(session_id))

    def cookie_header(self, session_id: str) -> str:
        return (
            f"{SESSION_COOKIE}={session_id}; Path=/; HttpOnly; Secure; SameSite=Lax; "
            f"Max-Age={self.ttl_seconds}"
        )

    @staticmethod
    def clear_cookie_header() -> str:
        return f"{SESSION_COOKIE}=; Path=/; HttpOnly; Secure; SameSite=Lax; Max-Age=0"
