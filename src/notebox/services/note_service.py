"""Note service — create, view, edit, delete and list an identity's notes.

Every operation takes an AccessGuard. An anonymous guard is refused before
the database is touched. Operations on a single note load it scoped to the
caller, so someone else's note looks exactly like a missing one.

Multi-step writes run as one transaction: note + tag links on create,
update + relink on edit, links + note on delete. Any failure rolls the
whole unit back.
"""

import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from notebox.auth.guard import AccessGuard
from notebox.db.models import Note, Tag
from notebox.errors import NotFoundOrNotOwned, ValidationFailure, store_boundary
from notebox.services.tag_linker import TagLinker, normalize_tags

logger = structlog.get_logger()

MAX_TITLE_LENGTH = 255
MAX_TAG_LENGTH = 100


@dataclass(frozen=True)
class NoteWithTags:
    note: Note
    tags: list[Tag]


def _clean_title(title: str | None) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationFailure("title", "must not be blank")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationFailure("title", f"longer than {MAX_TITLE_LENGTH} characters")
    return title


def _check_tags(raw: str | None) -> None:
    for name in normalize_tags(raw):
        if len(name) > MAX_TAG_LENGTH:
            raise ValidationFailure("tags", f"tag longer than {MAX_TAG_LENGTH} characters")


class NoteService:
    """Business logic for notes."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.tags = TagLinker(db)

    @asynccontextmanager
    async def _transaction(self, operation: str):
        """Commit on success, roll back on any error."""
        with store_boundary(operation):
            try:
                yield
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

    async def _owned_note_id(self, guard: AccessGuard, note_id: uuid.UUID) -> uuid.UUID:
        result = await self.db.execute(
            select(Note.owner_id).where(
                Note.id == note_id, Note.owner_id == guard.require().id
            )
        )
        guard.ensure_owner(result.scalar_one_or_none())
        return note_id

    # ─── Create ─────────────────────────────────────────

    async def create_note(
        self,
        guard: AccessGuard,
        title: str,
        body: str,
        raw_tags: str | None = None,
    ) -> uuid.UUID:
        identity = guard.require()
        title = _clean_title(title)
        _check_tags(raw_tags)

        async with self._transaction("create_note"):
            note = Note(owner_id=identity.id, title=title, body=body or "")
            self.db.add(note)
            await self.db.flush()
            tag_names = await self.tags.link(note.id, raw_tags)

        logger.info(
            "note.created",
            note_id=str(note.id),
            identity_id=str(identity.id),
            tag_count=len(tag_names),
        )
        return note.id

    # ─── Read ───────────────────────────────────────────

    async def get_note(self, guard: AccessGuard, note_id: uuid.UUID) -> NoteWithTags:
        identity = guard.require()
        with store_boundary("get_note"):
            result = await self.db.execute(
                select(Note)
                .where(Note.id == note_id, Note.owner_id == identity.id)
                .options(selectinload(Note.tags))
                .execution_options(populate_existing=True)
            )
            note = result.scalars().first()
        guard.ensure_owner(note.owner_id if note else None)
        return NoteWithTags(note=note, tags=list(note.tags))

    async def list_notes(self, guard: AccessGuard) -> list[NoteWithTags]:
        """The caller's notes, newest first, each with its tags."""
        identity = guard.require()
        with store_boundary("list_notes"):
            result = await self.db.execute(
                select(Note)
                .where(Note.owner_id == identity.id)
                .options(selectinload(Note.tags))
                .order_by(Note.created_at.desc())
                .execution_options(populate_existing=True)
            )
            notes = result.scalars().all()
        return [NoteWithTags(note=n, tags=list(n.tags)) for n in notes]

    # ─── Edit ───────────────────────────────────────────

    async def edit_note(
        self,
        guard: AccessGuard,
        note_id: uuid.UUID,
        title: str,
        body: str,
        raw_tags: str | None = None,
    ) -> None:
        """Update title/body. When ``raw_tags`` is given, replace the tags too."""
        identity = guard.require()
        title = _clean_title(title)
        _check_tags(raw_tags)

        async with self._transaction("edit_note"):
            result = await self.db.execute(
                update(Note)
                .where(Note.id == note_id, Note.owner_id == identity.id)
                .values(title=title, body=body or "")
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundOrNotOwned()
            if raw_tags is not None:
                await self.tags.unlink_all(note_id)
                await self.tags.link(note_id, raw_tags)

        logger.info("note.edited", note_id=str(note_id), retagged=raw_tags is not None)

    # ─── Delete ─────────────────────────────────────────

    async def delete_note(self, guard: AccessGuard, note_id: uuid.UUID) -> None:
        """Remove the note and its links together. Tags themselves stay."""
        guard.require()

        async with self._transaction("delete_note"):
            await self._owned_note_id(guard, note_id)
            unlinked = await self.tags.unlink_all(note_id)
            result = await self.db.execute(
                delete(Note)
                .where(Note.id == note_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise NotFoundOrNotOwned()

        logger.info("note.deleted", note_id=str(note_id), links_removed=unlinked)
