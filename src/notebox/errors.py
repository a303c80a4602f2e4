"""Failure taxonomy shared by the auth and notes services.

Services raise these; the API layer maps them to HTTP responses in
``register_exception_handlers``. Raw SQLAlchemy errors never leave a
service: ``store_boundary`` turns them into ``StoreUnavailable``.

Authentication sub-kinds exist for logging and tests only. Callers outside
the core see one generic "invalid credentials" signal for all of them.
"""

from contextlib import contextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = structlog.get_logger()


class NoteboxError(Exception):
    """Root of every error a service may raise."""


# ─── Authentication ─────────────────────────────────────


class AuthenticationFailure(NoteboxError):
    """Login could not be completed."""


class IdentityNotFound(AuthenticationFailure):
    pass


class CredentialTypeMismatch(AuthenticationFailure):
    """Password login attempted against a federated-only identity."""


class InvalidCredential(AuthenticationFailure):
    pass


class FederationFailure(AuthenticationFailure):
    """The identity provider exchange failed or returned an unusable profile."""


# ─── Authorization ──────────────────────────────────────


class AuthorizationFailure(NoteboxError):
    """No usable session for an operation that needs one."""


class NotFoundOrNotOwned(AuthorizationFailure):
    """The note does not exist, or belongs to somebody else.

    The two cases are deliberately indistinguishable.
    """


# ─── Everything else ────────────────────────────────────


class AlreadyExists(NoteboxError):
    pass


class ValidationFailure(NoteboxError):
    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class StoreUnavailable(NoteboxError):
    def __init__(self, operation: str):
        super().__init__(f"store unavailable during {operation}")
        self.operation = operation


@contextmanager
def store_boundary(operation: str):
    """Convert database errors raised inside the block into StoreUnavailable."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(
            "store.unavailable",
            operation=operation,
            error_type=type(e).__name__,
            error=str(e),
        )
        raise StoreUnavailable(operation) from e


# ─── FastAPI handlers ───────────────────────────────────


def register_exception_handlers(app: FastAPI) -> None:
    """Map the taxonomy onto HTTP responses."""

    @app.exception_handler(AuthenticationFailure)
    async def authentication_failure_handler(
        request: Request, exc: AuthenticationFailure
    ) -> JSONResponse:
        logger.info(
            "auth.failed", kind=type(exc).__name__, path=request.url.path
        )
        return JSONResponse(
            status_code=401, content={"detail": "Invalid credentials"}
        )

    @app.exception_handler(NotFoundOrNotOwned)
    async def not_found_handler(
        request: Request, exc: NotFoundOrNotOwned
    ) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": "Note not found"})

    @app.exception_handler(AuthorizationFailure)
    async def authorization_failure_handler(
        request: Request, exc: AuthorizationFailure
    ) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"detail": "Authentication required", "login": "/api/v1/auth/login"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(AlreadyExists)
    async def already_exists_handler(
        request: Request, exc: AlreadyExists
    ) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(ValidationFailure)
    async def validation_failure_handler(
        request: Request, exc: ValidationFailure
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": exc.message, "field": exc.field},
        )

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable_handler(
        request: Request, exc: StoreUnavailable
    ) -> JSONResponse:
        return JSONResponse(
            status_code=503,
            content={"detail": "Service temporarily unavailable, try again"},
        )
