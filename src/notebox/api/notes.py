"""Notes API — CRUD over the caller's own notes.

Every route depends on the access guard; another identity's note answers
404, the same as a note that never existed.
"""

import uuid

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from notebox.auth.dependencies import get_access_guard
from notebox.auth.guard import AccessGuard
from notebox.db.engine import get_db
from notebox.schemas.note import NoteCreate, NoteRead, NoteUpdate
from notebox.services.note_service import NoteService

router = APIRouter()


def _svc(db: AsyncSession = Depends(get_db)) -> NoteService:
    return NoteService(db)


@router.get("/notes", response_model=list[NoteRead])
async def list_notes(
    guard: AccessGuard = Depends(get_access_guard),
    svc: NoteService = Depends(_svc),
):
    """The caller's notes, newest first."""
    return [NoteRead.from_entry(e) for e in await svc.list_notes(guard)]


@router.post("/notes", response_model=NoteRead, status_code=201)
async def create_note(
    body: NoteCreate,
    guard: AccessGuard = Depends(get_access_guard),
    svc: NoteService = Depends(_svc),
):
    note_id = await svc.create_note(guard, body.title, body.body, body.tags)
    return NoteRead.from_entry(await svc.get_note(guard, note_id))


@router.get("/notes/{note_id}", response_model=NoteRead)
async def get_note(
    note_id: uuid.UUID,
    guard: AccessGuard = Depends(get_access_guard),
    svc: NoteService = Depends(_svc),
):
    return NoteRead.from_entry(await svc.get_note(guard, note_id))


@router.patch("/notes/{note_id}", response_model=NoteRead)
async def edit_note(
    note_id: uuid.UUID,
    body: NoteUpdate,
    guard: AccessGuard = Depends(get_access_guard),
    svc: NoteService = Depends(_svc),
):
    await svc.edit_note(guard, note_id, body.title, body.body, body.tags)
    return NoteRead.from_entry(await svc.get_note(guard, note_id))


@router.delete("/notes/{note_id}", status_code=204)
async def delete_note(
    note_id: uuid.UUID,
    guard: AccessGuard = Depends(get_access_guard),
    svc: NoteService = Depends(_svc),
):
    await svc.delete_note(guard, note_id)
    return Response(status_code=204)
