"""Session token encoding.

A session token is a signed JWT that names a server-side session row
(``sid``) and the identity it belongs to (``sub``). Nothing else goes in
the payload — no email, no credential material.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from notebox.config import settings


class TokenError(Exception):
    """Raised when a token cannot be decoded or has expired."""


def create_session_token(
    identity_id: uuid.UUID,
    session_id: uuid.UUID,
    expires_at: datetime,
) -> str:
    payload = {
        "sub": str(identity_id),
        "sid": str(session_id),
        "iat": datetime.now(timezone.utc),
        "exp": expires_at,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def session_expiry(minutes: Optional[int] = None) -> datetime:
    return datetime.now(timezone.utc) + timedelta(
        minutes=minutes or settings.session_expire_minutes
    )


def verify_token(token: str, verify_exp: bool = True) -> dict:
    """Verify and decode a session token.

    Returns the payload dict on success; raises TokenError otherwise,
    including when ``sub`` or ``sid`` is missing or not a UUID.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_exp": verify_exp, "require": ["sub", "sid", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    try:
        payload["sub"] = uuid.UUID(payload["sub"])
        payload["sid"] = uuid.UUID(payload["sid"])
    except (ValueError, TypeError, AttributeError):
        raise TokenError("Invalid token: malformed subject")
    return payload
