"""SQLAlchemy ORM models — single source of truth for the database schema.

Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table; ``note_tags`` is a plain association table.

Key concepts:
- UUID primary keys for identities, notes and sessions; tags use an
  integer key since they are a small global vocabulary.
- The identity credential is stored as (credential_kind, credential_data)
  and exposed as a tagged variant: ``LocalPassword`` or ``Federated``.
- Portable column types so the same models run on PostgreSQL and SQLite.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Union

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


# ─── Credential variant ─────────────────────────────────

CREDENTIAL_LOCAL = "local"
CREDENTIAL_FEDERATED = "federated"


@dataclass(frozen=True)
class LocalPassword:
    hash: str


@dataclass(frozen=True)
class Federated:
    provider: str


Credential = Union[LocalPassword, Federated]


# ══════════════════════════════════════════════════════════════
# Identities and sessions
# ══════════════════════════════════════════════════════════════


class Identity(Base):
    """The durable principal a session resolves to.

    Created on registration or first federated login, never deleted.
    Email is unique exactly as stored (no case folding).
    """

    __tablename__ = "identities"
    __table_args__ = (
        CheckConstraint(
            "credential_kind IN ('local', 'federated')",
            name="ck_identities_credential_kind",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    credential_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    # bcrypt hash for local accounts, provider tag for federated ones
    credential_data: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    @property
    def credential(self) -> Credential:
        if self.credential_kind == CREDENTIAL_LOCAL:
            return LocalPassword(self.credential_data)
        if self.credential_kind == CREDENTIAL_FEDERATED:
            return Federated(self.credential_data)
        raise ValueError(f"Unknown credential kind: {self.credential_kind!r}")

    @staticmethod
    def credential_columns(credential: Credential) -> dict:
        """Column values for storing a credential variant."""
        if isinstance(credential, LocalPassword):
            return {
                "credential_kind": CREDENTIAL_LOCAL,
                "credential_data": credential.hash,
            }
        return {
            "credential_kind": CREDENTIAL_FEDERATED,
            "credential_data": credential.provider,
        }


class AuthSession(Base):
    """Server-side half of a session token.

    The token carries this row's id; deleting the row revokes the token
    even before it expires.
    """

    __tablename__ = "sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    identity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("identities.id"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )


# ══════════════════════════════════════════════════════════════
# Notes and tags
# ══════════════════════════════════════════════════════════════


note_tags = Table(
    "note_tags",
    Base.metadata,
    Column("note_id", Uuid, ForeignKey("notes.id"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id"), primary_key=True),
)


class Tag(Base):
    """A normalized tag name, shared by every identity's notes."""

    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)


class Note(Base):
    """A note owned by exactly one identity."""

    __tablename__ = "notes"
    __table_args__ = (
        Index("ix_notes_owner_created", "owner_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("identities.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # Python-side default keeps sub-second ordering on every backend
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    tags: Mapped[list["Tag"]] = relationship(
        secondary=note_tags, order_by=Tag.name, viewonly=True
    )
