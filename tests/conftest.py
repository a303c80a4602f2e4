"""Test fixtures — a fresh SQLite database per test.

Each test gets its own database file under tmp_path with the schema created
from the ORM metadata, so no Postgres server is needed and nothing leaks
between tests. The upsert paths run on SQLite's ON CONFLICT, the same
statements the service issues against Postgres.

- ``session_factory``: sessionmaker bound to the test database
- ``db_session``: one session for service-level tests
- ``client``: HTTP client where every request gets its own session
- ``make_identity``: registers an identity in a separate session
- ``auth_client``: client already carrying a Bearer token
"""

import os

os.environ.setdefault("NOTEBOX_BCRYPT_ROUNDS", "4")

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from notebox.auth.guard import AccessGuard  # noqa: E402
from notebox.db.engine import get_db  # noqa: E402
from notebox.db.models import Base  # noqa: E402
from notebox.main import app  # noqa: E402
from notebox.services.identity_service import IdentityService  # noqa: E402


@pytest_asyncio.fixture()
async def session_factory(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'notebox-test.db'}", echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def make_identity(session_factory):
    """Register a password identity in its own session and return it."""

    async def _make(email: str, password: str = "pw-secret"):
        async with session_factory() as session:
            return await IdentityService(session).register_local(email, password)

    return _make


@pytest_asyncio.fixture()
async def guard_for(make_identity):
    """AccessGuard for a freshly registered identity."""

    async def _guard(email: str) -> AccessGuard:
        return AccessGuard(await make_identity(email))

    return _guard


@pytest_asyncio.fixture()
async def client(session_factory):
    """HTTP client with get_db pointed at the test database."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def auth_client(client):
    """Client logged in as a freshly registered user (Bearer header)."""
    r = await client.post(
        "/api/v1/auth/register",
        json={"email": "owner@example.com", "password": "owner-pw"},
    )
    assert r.status_code == 201
    client.headers["Authorization"] = f"Bearer {r.json()['access_token']}"
    # Bearer wins over cookie; drop the cookie so tests see one source
    client.cookies.clear()
    return client
