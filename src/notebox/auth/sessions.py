"""Session manager — identity <-> session token.

``serialize`` opens a server-side session row and signs a token naming it.
``deserialize`` reverses that on every request and re-reads the identity
row each time; nothing about the identity is cached between requests.
A token whose session row or identity has gone away yields None, which
callers treat exactly like "not logged in".
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from notebox.auth.jwt import (
    TokenError,
    create_session_token,
    session_expiry,
    verify_token,
)
from notebox.db.models import AuthSession, Identity

logger = structlog.get_logger()


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class SessionManager:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def serialize(self, identity: Identity) -> str:
        """Open a session for ``identity``; its expired sessions are dropped."""
        await self.db.execute(
            delete(AuthSession).where(
                AuthSession.identity_id == identity.id,
                AuthSession.expires_at <= datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        session = AuthSession(
            identity_id=identity.id,
            expires_at=session_expiry(),
        )
        self.db.add(session)
        await self.db.commit()
        logger.info("session.opened", identity_id=str(identity.id), session_id=str(session.id))
        return create_session_token(identity.id, session.id, session.expires_at)

    async def deserialize(self, token: Optional[str]) -> Optional[Identity]:
        if not token:
            return None
        try:
            claims = verify_token(token)
        except TokenError as e:
            logger.debug("session.rejected", reason=str(e))
            return None

        session = await self._load_session(claims["sid"])
        if session is None or session.identity_id != claims["sub"]:
            return None
        if _as_aware(session.expires_at) <= datetime.now(timezone.utc):
            return None

        result = await self.db.execute(
            select(Identity)
            .where(Identity.id == session.identity_id)
            .execution_options(populate_existing=True)
        )
        identity = result.scalars().first()
        if identity is None:
            logger.warning("session.identity_missing", session_id=str(session.id))
        return identity

    async def revoke(self, token: Optional[str]) -> None:
        """Invalidate a token. Unknown, expired or garbage tokens are a no-op."""
        if not token:
            return
        try:
            claims = verify_token(token, verify_exp=False)
        except TokenError:
            return
        result = await self.db.execute(
            delete(AuthSession).where(AuthSession.id == claims["sid"])
        )
        await self.db.commit()
        if result.rowcount:
            logger.info("session.closed", session_id=str(claims["sid"]))

    async def _load_session(self, session_id: uuid.UUID) -> Optional[AuthSession]:
        result = await self.db.execute(
            select(AuthSession).where(AuthSession.id == session_id)
        )
        return result.scalars().first()
