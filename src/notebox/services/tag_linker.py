"""Tag linker — free-text tags into the note_tags relation.

"Work, work ,WORK" and "work" are the same tag: names are trimmed and
lowercased, blanks dropped, duplicates collapsed. Tag rows are created with
INSERT … ON CONFLICT DO NOTHING and then read back, so concurrent writers of
the same name converge on one row without locking existing tags. Link rows
ignore duplicates the same way.

The linker never commits. It runs inside the caller's transaction so a
note and its links land (or vanish) together.
"""

import uuid

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from notebox.db.engine import upsert_insert
from notebox.db.models import Tag, note_tags

logger = structlog.get_logger()


def normalize_tags(raw: str | None) -> list[str]:
    """Split a comma-separated string into unique normalized names, in order."""
    if not raw:
        return []
    names = (part.strip().lower() for part in raw.split(","))
    return list(dict.fromkeys(name for name in names if name))


class TagLinker:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def upsert_tag(self, name: str) -> int:
        """Return the id of the tag called ``name``, creating it if needed."""
        stmt = (
            upsert_insert(self.db, Tag.__table__)
            .values(name=name)
            .on_conflict_do_nothing(index_elements=["name"])
        )
        await self.db.execute(stmt)
        result = await self.db.execute(select(Tag.id).where(Tag.name == name))
        return result.scalar_one()

    async def link_tag(self, note_id: uuid.UUID, tag_id: int) -> None:
        stmt = (
            upsert_insert(self.db, note_tags)
            .values(note_id=note_id, tag_id=tag_id)
            .on_conflict_do_nothing(index_elements=["note_id", "tag_id"])
        )
        await self.db.execute(stmt)

    async def link(self, note_id: uuid.UUID, raw: str | None) -> list[str]:
        """Attach every tag in ``raw`` to the note. Returns the normalized names."""
        names = normalize_tags(raw)
        # Sorted, so two writers inserting the same new names never wait on
        # each other in opposite order
        for name in sorted(names):
            tag_id = await self.upsert_tag(name)
            await self.link_tag(note_id, tag_id)
        if names:
            logger.debug("tags.linked", note_id=str(note_id), tags=names)
        return names

    async def unlink_all(self, note_id: uuid.UUID) -> int:
        result = await self.db.execute(
            delete(note_tags).where(note_tags.c.note_id == note_id)
        )
        return result.rowcount
