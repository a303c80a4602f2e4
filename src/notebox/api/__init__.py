"""API route aggregation.

All routers registered here get mounted in main.py. Health and auth are
open; the notes router reaches the access guard through each handler, so an
anonymous call is answered 401 before the service touches the database.
"""

from fastapi import APIRouter

from notebox.api.auth import router as auth_router
from notebox.api.health import router as health_router
from notebox.api.notes import router as notes_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(notes_router, tags=["notes"])
