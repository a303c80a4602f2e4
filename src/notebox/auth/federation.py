"""Federated login — provider exchange and identity resolution.

Two halves:
1. ``GoogleProvider`` runs the OAuth2 authorization-code exchange over httpx
   and returns a ``ProviderProfile`` with a verified email.
2. ``FederatedIdentityResolver`` maps that profile onto a local identity,
   creating one when the email is new.

Resolution is an upsert keyed on email. Two logins racing for the same new
email both end up with the same row: the loser's INSERT hits the unique
constraint, does nothing, and the row is re-read.
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from notebox.auth.credentials import find_identity_by_email
from notebox.config import settings
from notebox.db.engine import upsert_insert
from notebox.db.models import Federated, Identity, new_uuid
from notebox.errors import FederationFailure, ValidationFailure

logger = structlog.get_logger()

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"


@dataclass(frozen=True)
class ProviderProfile:
    """What a provider vouches for after its own protocol exchange."""

    provider: str
    email: str
    subject: Optional[str] = None
    name: Optional[str] = None


class GoogleProvider:
    """OAuth2 code flow against Google's OpenID endpoints."""

    name = "google"

    def __init__(
        self,
        client_id: str = "",
        client_secret: str = "",
        redirect_uri: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id or settings.google_client_id
        self.client_secret = client_secret or settings.google_client_secret
        self.redirect_uri = redirect_uri or settings.google_redirect_uri
        self.timeout = timeout
        self.transport = transport

    def authorization_url(self, state: str) -> str:
        query = urlencode({
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "state": state,
        })
        return f"{GOOGLE_AUTH_URL}?{query}"

    async def exchange(self, code: str) -> ProviderProfile:
        """Trade an authorization code for the user's verified profile."""
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                token_resp = await client.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "code": code,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "redirect_uri": self.redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
                token_resp.raise_for_status()
                access_token = token_resp.json().get("access_token")
                if not access_token:
                    raise FederationFailure("token response without access_token")

                info_resp = await client.get(
                    GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                info_resp.raise_for_status()
                info = info_resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("federation.exchange_failed", provider=self.name, error=str(e))
            raise FederationFailure(f"{self.name} exchange failed") from e

        return self.profile_from_userinfo(info)

    def profile_from_userinfo(self, info: dict) -> ProviderProfile:
        email = info.get("email")
        verified = info.get("email_verified")
        # Google sends a bool; some proxies relay it as a string
        if not email or not (verified is True or verified == "true"):
            raise FederationFailure(f"{self.name} profile has no verified email")
        return ProviderProfile(
            provider=self.name,
            email=email,
            subject=info.get("sub"),
            name=info.get("name"),
        )


class FederatedIdentityResolver:
    """Get-or-create an Identity for a provider-verified email."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve(self, profile: ProviderProfile) -> Identity:
        email = (profile.email or "").strip()
        if not email:
            raise ValidationFailure("email", "provider profile has no email")

        existing = await find_identity_by_email(self.db, email)
        if existing is not None:
            # Same email under a password account resolves to that account.
            logger.info(
                "identity.federated_existing",
                identity_id=str(existing.id),
                provider=profile.provider,
                credential_kind=existing.credential_kind,
            )
            return existing

        stmt = (
            upsert_insert(self.db, Identity.__table__)
            .values(
                id=new_uuid(),
                email=email,
                **Identity.credential_columns(Federated(profile.provider)),
            )
            .on_conflict_do_nothing(index_elements=["email"])
            .returning(Identity.__table__.c.id)
        )
        inserted_id = (await self.db.execute(stmt)).scalar_one_or_none()
        await self.db.commit()

        if inserted_id is None:
            logger.info("identity.conflict_resolved", provider=profile.provider)
        else:
            logger.info(
                "identity.created",
                identity_id=str(inserted_id),
                credential_kind="federated",
                provider=profile.provider,
            )

        result = await self.db.execute(
            select(Identity)
            .where(Identity.email == email)
            .execution_options(populate_existing=True)
        )
        return result.scalars().one()
