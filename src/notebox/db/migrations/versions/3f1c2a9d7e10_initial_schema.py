"""initial schema: identities, sessions, notes, tags, note_tags

Revision ID: 3f1c2a9d7e10
Revises:
Create Date: 2026-10-19 09:12:44.118203
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = '3f1c2a9d7e10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'identities',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('credential_kind', sa.String(length=20), nullable=False),
        sa.Column('credential_data', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.CheckConstraint("credential_kind IN ('local', 'federated')", name='ck_identities_credential_kind'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    op.create_table(
        'tags',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )
    op.create_table(
        'sessions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('identity_id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['identity_id'], ['identities.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sessions_identity_id', 'sessions', ['identity_id'])
    op.create_table(
        'notes',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['identities.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notes_owner_created', 'notes', ['owner_id', 'created_at'])
    op.create_table(
        'note_tags',
        sa.Column('note_id', sa.Uuid(), nullable=False),
        sa.Column('tag_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['note_id'], ['notes.id']),
        sa.ForeignKeyConstraint(['tag_id'], ['tags.id']),
        sa.PrimaryKeyConstraint('note_id', 'tag_id'),
    )


def downgrade() -> None:
    op.drop_table('note_tags')
    op.drop_index('ix_notes_owner_created', table_name='notes')
    op.drop_table('notes')
    op.drop_index('ix_sessions_identity_id', table_name='sessions')
    op.drop_table('sessions')
    op.drop_table('tags')
    op.drop_table('identities')
