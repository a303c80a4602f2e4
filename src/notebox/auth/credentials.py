"""Password login against the identity table.

Every failure path costs one bcrypt comparison, so response time does not
reveal whether the email exists or belongs to a federated account.
"""

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from notebox.auth.password import burn_password_check, verify_password
from notebox.db.models import Identity, LocalPassword
from notebox.errors import CredentialTypeMismatch, IdentityNotFound, InvalidCredential

logger = structlog.get_logger()


async def find_identity_by_email(db: AsyncSession, email: str) -> Identity | None:
    result = await db.execute(select(Identity).where(Identity.email == email))
    return result.scalars().first()


class CredentialVerifier:
    """Resolve an (email, password) pair to an Identity or raise."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def verify(self, email: str, password: str) -> Identity:
        identity = await find_identity_by_email(self.db, email)

        if identity is None:
            burn_password_check(password)
            raise IdentityNotFound(email)

        credential = identity.credential
        if isinstance(credential, LocalPassword):
            if not verify_password(password, credential.hash):
                raise InvalidCredential(str(identity.id))
            return identity

        # Federated: there is no password to compare against
        burn_password_check(password)
        logger.info(
            "auth.password_on_federated",
            identity_id=str(identity.id),
            provider=credential.provider,
        )
        raise CredentialTypeMismatch(credential.provider)
