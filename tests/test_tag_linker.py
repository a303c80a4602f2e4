"""TagLinker tests — normalization and the deduplicated note_tags relation."""

import pytest
from sqlalchemy import func, select

from notebox.db.models import Note, Tag, note_tags
from notebox.services.tag_linker import TagLinker, normalize_tags


@pytest.mark.parametrize("raw,expected", [
    ("Work, work ,WORK", ["work"]),
    ("food, errand", ["food", "errand"]),
    ("  Home  ,,  , garden ", ["home", "garden"]),
    ("", []),
    ("   ", []),
    (" , , ", []),
    (None, []),
    ("single", ["single"]),
])
def test_normalize_tags(raw, expected):
    assert normalize_tags(raw) == expected


async def _note(db, make_identity, email="a@x.com"):
    identity = await make_identity(email)
    note = Note(owner_id=identity.id, title="t", body="")
    db.add(note)
    await db.commit()
    return note


async def _tag_names(db) -> list[str]:
    return list((await db.execute(select(Tag.name).order_by(Tag.name))).scalars())


async def _link_count(db, note_id=None) -> int:
    q = select(func.count()).select_from(note_tags)
    if note_id is not None:
        q = q.where(note_tags.c.note_id == note_id)
    return (await db.execute(q)).scalar_one()


@pytest.mark.asyncio
async def test_case_variants_collapse(db_session, make_identity):
    note = await _note(db_session, make_identity)
    names = await TagLinker(db_session).link(note.id, "Work, work ,WORK")
    await db_session.commit()

    assert names == ["work"]
    assert await _tag_names(db_session) == ["work"]
    assert await _link_count(db_session, note.id) == 1


@pytest.mark.asyncio
async def test_blank_input_links_nothing(db_session, make_identity):
    note = await _note(db_session, make_identity)
    linker = TagLinker(db_session)
    assert await linker.link(note.id, "") == []
    assert await linker.link(note.id, " ,  ,") == []
    await db_session.commit()

    assert await _tag_names(db_session) == []
    assert await _link_count(db_session) == 0


@pytest.mark.asyncio
async def test_upsert_returns_existing_id(db_session):
    linker = TagLinker(db_session)
    first = await linker.upsert_tag("shared")
    second = await linker.upsert_tag("shared")
    await db_session.commit()

    assert first == second
    assert await _tag_names(db_session) == ["shared"]


@pytest.mark.asyncio
async def test_duplicate_link_is_noop(db_session, make_identity):
    note = await _note(db_session, make_identity)
    linker = TagLinker(db_session)
    tag_id = await linker.upsert_tag("x")
    await linker.link_tag(note.id, tag_id)
    await linker.link_tag(note.id, tag_id)
    await linker.link(note.id, "X, x")
    await db_session.commit()

    assert await _link_count(db_session, note.id) == 1


@pytest.mark.asyncio
async def test_vocabulary_is_shared_across_identities(db_session, make_identity):
    alice_note = await _note(db_session, make_identity, "alice@x.com")
    bob_note = await _note(db_session, make_identity, "bob@x.com")
    linker = TagLinker(db_session)
    await linker.link(alice_note.id, "Travel")
    await linker.link(bob_note.id, "travel, work")
    await db_session.commit()

    assert await _tag_names(db_session) == ["travel", "work"]
    assert await _link_count(db_session, alice_note.id) == 1
    assert await _link_count(db_session, bob_note.id) == 2


@pytest.mark.asyncio
async def test_unlink_all_keeps_tags(db_session, make_identity):
    note = await _note(db_session, make_identity)
    linker = TagLinker(db_session)
    await linker.link(note.id, "a, b, c")
    removed = await linker.unlink_all(note.id)
    await db_session.commit()

    assert removed == 3
    assert await _link_count(db_session, note.id) == 0
    assert await _tag_names(db_session) == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_tags_written_in_sorted_order(db_session, make_identity, monkeypatch):
    """Writers touch tag rows in one fixed order, whatever order the user typed."""
    note = await _note(db_session, make_identity)
    written = []
    real_upsert = TagLinker.upsert_tag

    async def recording_upsert(self, name):
        written.append(name)
        return await real_upsert(self, name)

    monkeypatch.setattr(TagLinker, "upsert_tag", recording_upsert)
    names = await TagLinker(db_session).link(note.id, "work, home, Errand")
    await db_session.commit()

    assert written == ["errand", "home", "work"]
    # The caller still gets the names in input order
    assert names == ["work", "home", "errand"]
    assert await _link_count(db_session, note.id) == 3


@pytest.mark.asyncio
async def test_same_new_tag_from_two_sessions(session_factory, make_identity):
    """Two writers creating the same tag end up sharing one row."""
    alice = await make_identity("alice@x.com")
    bob = await make_identity("bob@x.com")

    async with session_factory() as first, session_factory() as second:
        first_note = Note(owner_id=alice.id, title="a", body="")
        second_note = Note(owner_id=bob.id, title="b", body="")
        first.add(first_note)
        second.add(second_note)
        await first.commit()
        await second.commit()

        # The second writer has looked and found no tag yet
        assert await _tag_names(second) == []

        first_id = await TagLinker(first).upsert_tag("fresh")
        await TagLinker(first).link_tag(first_note.id, first_id)
        await first.commit()

        # Its insert now conflicts and resolves to the first writer's row
        second_id = await TagLinker(second).upsert_tag("fresh")
        await TagLinker(second).link_tag(second_note.id, second_id)
        await second.commit()

    assert first_id == second_id
    async with session_factory() as session:
        assert await _tag_names(session) == ["fresh"]
        assert await _link_count(session) == 2
