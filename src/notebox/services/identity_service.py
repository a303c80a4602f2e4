"""Identity service — the operations the login screens call.

Service layer separates business logic from HTTP routing. API routes and
the tests call these; they call the auth components and the database.
Every store error surfaces as StoreUnavailable.
"""

from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from notebox.auth.credentials import CredentialVerifier
from notebox.auth.federation import FederatedIdentityResolver, ProviderProfile
from notebox.auth.password import hash_password
from notebox.auth.sessions import SessionManager
from notebox.db.engine import upsert_insert
from notebox.db.models import Identity, LocalPassword, new_uuid
from notebox.errors import (
    AlreadyExists,
    AuthenticationFailure,
    ValidationFailure,
    store_boundary,
)

logger = structlog.get_logger()


class IdentityService:
    """Registration, login, and session lookup."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.sessions = SessionManager(db)

    # ─── Local accounts ─────────────────────────────────

    async def register_local(self, email: str, password: str) -> Identity:
        """Create a password account. Never overwrites an existing email."""
        email = (email or "").strip()
        if not email:
            raise ValidationFailure("email", "must not be blank")
        if not password:
            raise ValidationFailure("password", "must not be blank")

        password_hash = hash_password(password)
        with store_boundary("register_local"):
            stmt = (
                upsert_insert(self.db, Identity.__table__)
                .values(
                    id=new_uuid(),
                    email=email,
                    **Identity.credential_columns(LocalPassword(password_hash)),
                )
                .on_conflict_do_nothing(index_elements=["email"])
                .returning(Identity.__table__.c.id)
            )
            identity_id = (await self.db.execute(stmt)).scalar_one_or_none()
            if identity_id is None:
                logger.info("identity.register_refused")
                raise AlreadyExists("Email already registered")
            await self.db.commit()

            result = await self.db.execute(
                select(Identity).where(Identity.id == identity_id)
            )
            identity = result.scalars().one()

        logger.info("identity.created", identity_id=str(identity.id), credential_kind="local")
        return identity

    async def login_local(self, email: str, password: str) -> Identity:
        with store_boundary("login_local"):
            try:
                return await CredentialVerifier(self.db).verify(
                    (email or "").strip(), password or ""
                )
            except AuthenticationFailure as e:
                logger.info("auth.login_failed", kind=type(e).__name__)
                raise

    # ─── Federated accounts ─────────────────────────────

    async def login_federated(self, profile: ProviderProfile) -> Identity:
        with store_boundary("login_federated"):
            return await FederatedIdentityResolver(self.db).resolve(profile)

    # ─── Sessions ───────────────────────────────────────

    async def open_session(self, identity: Identity) -> str:
        with store_boundary("open_session"):
            return await self.sessions.serialize(identity)

    async def current_identity(self, token: Optional[str]) -> Optional[Identity]:
        with store_boundary("current_identity"):
            return await self.sessions.deserialize(token)

    async def logout(self, token: Optional[str]) -> None:
        with store_boundary("logout"):
            await self.sessions.revoke(token)
