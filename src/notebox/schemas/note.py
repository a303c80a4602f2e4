"""Pydantic schemas for notes.

Separate "Create"/"Update" schemas (input) from "Read" schemas (output).
Tags come in as one comma-separated string and go out as a list of names.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class NoteCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    body: str = ""
    tags: str = Field(default="", description="Comma-separated, e.g. 'food, errand'")


class NoteUpdate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    body: str = ""
    tags: Optional[str] = Field(
        default=None, description="Replaces all tags when present; omit to keep them"
    )


class NoteRead(BaseModel):
    id: uuid.UUID
    title: str
    body: str
    created_at: datetime
    tags: list[str] = []

    @classmethod
    def from_entry(cls, entry) -> "NoteRead":
        """Build from a NoteWithTags."""
        note = entry.note
        return cls(
            id=note.id,
            title=note.title,
            body=note.body,
            created_at=note.created_at,
            tags=[t.name for t in entry.tags],
        )
