"""SessionManager and AccessGuard tests."""

import uuid
from datetime import datetime, timedelta, timezone

import jwt as pyjwt
import pytest
from sqlalchemy import delete, select, update

from notebox.auth.guard import AccessGuard, GuardState
from notebox.auth.jwt import create_session_token
from notebox.auth.sessions import SessionManager
from notebox.config import settings
from notebox.db.models import AuthSession, Identity
from notebox.errors import AuthorizationFailure, NotFoundOrNotOwned


def _claims(token: str) -> dict:
    return pyjwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


# ═══════════════════════════════════════════════════════════
# serialize / deserialize
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_token_carries_only_ids(db_session, make_identity):
    identity = await make_identity("a@x.com", "super-secret")
    token = await SessionManager(db_session).serialize(identity)

    claims = _claims(token)
    assert set(claims) == {"sub", "sid", "iat", "exp"}
    assert claims["sub"] == str(identity.id)
    assert "super-secret" not in token
    assert identity.credential_data not in str(claims)


@pytest.mark.asyncio
async def test_round_trip(db_session, make_identity):
    identity = await make_identity("a@x.com")
    sessions = SessionManager(db_session)
    token = await sessions.serialize(identity)

    resolved = await sessions.deserialize(token)
    assert resolved is not None
    assert resolved.id == identity.id


@pytest.mark.asyncio
@pytest.mark.parametrize("token", [None, "", "garbage", "a.b.c"])
async def test_unusable_tokens_are_absent(db_session, token):
    assert await SessionManager(db_session).deserialize(token) is None


@pytest.mark.asyncio
async def test_token_signed_with_other_secret(db_session, make_identity):
    identity = await make_identity("a@x.com")
    forged = pyjwt.encode(
        {
            "sub": str(identity.id),
            "sid": str(uuid.uuid4()),
            "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        },
        "not-the-secret",
        algorithm="HS256",
    )
    assert await SessionManager(db_session).deserialize(forged) is None


@pytest.mark.asyncio
async def test_expired_token_is_absent(db_session, make_identity):
    identity = await make_identity("a@x.com")
    token = create_session_token(
        identity.id,
        uuid.uuid4(),
        datetime.now(timezone.utc) - timedelta(minutes=1),
    )
    assert await SessionManager(db_session).deserialize(token) is None


@pytest.mark.asyncio
async def test_expired_session_row_is_absent(session_factory, make_identity):
    identity = await make_identity("a@x.com")
    async with session_factory() as session:
        token = await SessionManager(session).serialize(identity)
        await session.execute(
            update(AuthSession).values(
                expires_at=datetime.now(timezone.utc) - timedelta(seconds=1)
            )
        )
        await session.commit()

    async with session_factory() as session:
        assert await SessionManager(session).deserialize(token) is None


@pytest.mark.asyncio
async def test_token_for_someone_elses_session(db_session, make_identity):
    """A valid sid paired with a different sub does not authenticate."""
    alice = await make_identity("alice@x.com")
    bob = await make_identity("bob@x.com")
    sessions = SessionManager(db_session)
    alice_token = await sessions.serialize(alice)

    sid = uuid.UUID(_claims(alice_token)["sid"])
    spliced = create_session_token(
        bob.id, sid, datetime.now(timezone.utc) + timedelta(hours=1)
    )
    assert await sessions.deserialize(spliced) is None


@pytest.mark.asyncio
async def test_deleted_identity_is_absent(session_factory, make_identity):
    identity = await make_identity("gone@x.com")
    async with session_factory() as session:
        token = await SessionManager(session).serialize(identity)
        await session.execute(delete(Identity).where(Identity.id == identity.id))
        await session.commit()

    async with session_factory() as session:
        assert await SessionManager(session).deserialize(token) is None


@pytest.mark.asyncio
async def test_identity_is_reread_every_time(session_factory, make_identity):
    """A change made by another session shows up on the next deserialize."""
    identity = await make_identity("before@x.com")
    async with session_factory() as session:
        sessions = SessionManager(session)
        token = await sessions.serialize(identity)
        assert (await sessions.deserialize(token)).email == "before@x.com"

        async with session_factory() as other:
            await other.execute(
                update(Identity)
                .where(Identity.id == identity.id)
                .values(email="after@x.com")
            )
            await other.commit()

        assert (await sessions.deserialize(token)).email == "after@x.com"


# ═══════════════════════════════════════════════════════════
# revoke
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_revoke(db_session, make_identity):
    identity = await make_identity("a@x.com")
    sessions = SessionManager(db_session)
    token = await sessions.serialize(identity)

    await sessions.revoke(token)
    assert await sessions.deserialize(token) is None

    # Second revoke and junk tokens are no-ops
    await sessions.revoke(token)
    await sessions.revoke("junk")
    await sessions.revoke(None)


# ═══════════════════════════════════════════════════════════
# AccessGuard
# ═══════════════════════════════════════════════════════════


def test_anonymous_guard():
    guard = AccessGuard()
    assert guard.state is GuardState.ANONYMOUS
    assert not guard.is_authenticated
    with pytest.raises(AuthorizationFailure):
        guard.require()
    with pytest.raises(AuthorizationFailure):
        guard.ensure_owner(uuid.uuid4())


@pytest.mark.asyncio
async def test_authenticated_guard_ownership(make_identity):
    identity = await make_identity("a@x.com")
    guard = AccessGuard(identity)

    assert guard.state is GuardState.AUTHENTICATED
    assert guard.require() is identity
    guard.ensure_owner(identity.id)

    with pytest.raises(NotFoundOrNotOwned):
        guard.ensure_owner(uuid.uuid4())
    with pytest.raises(NotFoundOrNotOwned):
        guard.ensure_owner(None)


@pytest.mark.asyncio
async def test_new_session_drops_expired_ones(session_factory, make_identity):
    alice = await make_identity("alice@x.com")
    bob = await make_identity("bob@x.com")
    past = datetime.now(timezone.utc) - timedelta(minutes=5)

    async with session_factory() as session:
        sessions = SessionManager(session)
        stale = await sessions.serialize(alice)
        live = await sessions.serialize(alice)
        await sessions.serialize(bob)
        stale_sid = uuid.UUID(_claims(stale)["sid"])
        await session.execute(
            update(AuthSession)
            .where(AuthSession.id == stale_sid)
            .values(expires_at=past)
        )
        await session.execute(
            update(AuthSession)
            .where(AuthSession.identity_id == bob.id)
            .values(expires_at=past)
        )
        await session.commit()

    async with session_factory() as session:
        await SessionManager(session).serialize(alice)

    async with session_factory() as session:
        rows = (await session.execute(select(AuthSession))).scalars().all()
        alice_sids = {r.id for r in rows if r.identity_id == alice.id}
        assert stale_sid not in alice_sids
        assert uuid.UUID(_claims(live)["sid"]) in alice_sids
        assert len(alice_sids) == 2
        # Only the identity logging in is pruned
        assert sum(1 for r in rows if r.identity_id == bob.id) == 1
