"""Auth API — registration, login, logout, Google federation.

Routes:
- POST /auth/register → create a password account and log it in
- POST /auth/login → email/password → session token (+ cookie)
- POST /auth/logout → revoke the session token (idempotent)
- GET /auth/me → the identity behind the current session
- GET /auth/google → redirect to Google's consent screen
- GET /auth/google/callback → code exchange → session cookie → redirect
  (back to the login page on any provider failure)

Every password login failure looks the same from outside: 401 "Invalid
credentials". A failed Google callback redirects to the login page.
"""

import secrets
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from notebox.auth.dependencies import get_current_identity, session_token
from notebox.auth.federation import GoogleProvider
from notebox.config import settings
from notebox.db.engine import get_db
from notebox.db.models import Identity
from notebox.errors import FederationFailure
from notebox.schemas.auth import (
    IdentityRead,
    LoginRequest,
    RegisterRequest,
    SessionResponse,
)
from notebox.services.identity_service import IdentityService

logger = structlog.get_logger()

router = APIRouter(prefix="/auth")

OAUTH_STATE_COOKIE = "notebox_oauth_state"


def _svc(db: AsyncSession = Depends(get_db)) -> IdentityService:
    return IdentityService(db)


def get_identity_provider() -> GoogleProvider:
    """Overridable in tests."""
    return GoogleProvider()


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_expire_minutes * 60,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )


async def _session_response(
    svc: IdentityService, identity: Identity, response: Response
) -> SessionResponse:
    token = await svc.open_session(identity)
    _set_session_cookie(response, token)
    return SessionResponse(
        access_token=token,
        identity=IdentityRead.model_validate(identity),
    )


# ─── Password accounts ──────────────────────────────────


@router.post("/register", response_model=SessionResponse, status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    svc: IdentityService = Depends(_svc),
):
    """Create a password account; the new user is logged in straight away."""
    identity = await svc.register_local(body.email, body.password)
    return await _session_response(svc, identity, response)


@router.post("/login", response_model=SessionResponse)
async def login(
    body: LoginRequest,
    response: Response,
    svc: IdentityService = Depends(_svc),
):
    identity = await svc.login_local(body.email, body.password)
    return await _session_response(svc, identity, response)


@router.post("/logout", status_code=204)
async def logout(
    token: Optional[str] = Depends(session_token),
    svc: IdentityService = Depends(_svc),
):
    await svc.logout(token)
    response = Response(status_code=204)
    response.delete_cookie(settings.session_cookie_name)
    return response


@router.get("/me", response_model=IdentityRead)
async def get_me(identity: Identity = Depends(get_current_identity)):
    return identity


# ─── Google ─────────────────────────────────────────────


@router.get("/google")
async def google_login(provider: GoogleProvider = Depends(get_identity_provider)):
    state = secrets.token_urlsafe(24)
    response = RedirectResponse(provider.authorization_url(state), status_code=302)
    response.set_cookie(
        OAUTH_STATE_COOKIE,
        state,
        max_age=600,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )
    return response


@router.get("/google/callback")
async def google_callback(
    request: Request,
    code: str = Query(...),
    state: str = Query(...),
    provider: GoogleProvider = Depends(get_identity_provider),
    svc: IdentityService = Depends(_svc),
):
    """Finish the Google flow. Any provider-side failure lands on the login page."""
    expected = request.cookies.get(OAUTH_STATE_COOKIE, "")
    try:
        if not expected or not secrets.compare_digest(expected, state):
            raise FederationFailure("state mismatch")
        profile = await provider.exchange(code)
    except FederationFailure as e:
        logger.info("auth.federation_failed", provider=provider.name, reason=str(e))
        response = RedirectResponse(settings.login_failure_redirect, status_code=302)
        response.delete_cookie(OAUTH_STATE_COOKIE)
        return response

    identity = await svc.login_federated(profile)
    token = await svc.open_session(identity)

    response = RedirectResponse(settings.post_login_redirect, status_code=302)
    _set_session_cookie(response, token)
    response.delete_cookie(OAUTH_STATE_COOKIE)
    return response
