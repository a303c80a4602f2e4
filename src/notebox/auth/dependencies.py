"""FastAPI auth dependencies.

Used as Depends() in route handlers to turn the request's session token
into an AccessGuard. The token is read from the Bearer header first and
the session cookie second.
"""

from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from notebox.auth.guard import AccessGuard
from notebox.auth.sessions import SessionManager
from notebox.config import settings
from notebox.db.engine import get_db
from notebox.db.models import Identity
from notebox.errors import store_boundary


def session_token(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> Optional[str]:
    """Extract the raw session token, if the request carries one."""
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:]
    return request.cookies.get(settings.session_cookie_name)


async def get_access_guard(
    token: Optional[str] = Depends(session_token),
    db: AsyncSession = Depends(get_db),
) -> AccessGuard:
    """Soft auth — anonymous requests get an ANONYMOUS guard."""
    if not token:
        return AccessGuard()
    with store_boundary("current_identity"):
        identity = await SessionManager(db).deserialize(token)
    return AccessGuard(identity)


async def get_current_identity(
    guard: AccessGuard = Depends(get_access_guard),
) -> Identity:
    """Hard auth — AuthorizationFailure (401) without a live session."""
    return guard.require()
