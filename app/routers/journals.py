"""
Journal router.

POST   /journals        — create entry
GET    /journals        — list own entries (newest first)
GET    /journals/{id}   — one entry
PATCH  /journals/{id}   — edit (within 24h of creation)
DELETE /journals/{id}   — soft delete
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.core.security import get_current_user
from app.models.journal import JournalCategory, JournalEntry
from app.models.user import User
from app.schemas.common import ApiResponse, ErrorResponse, ev, iso, ok
from app.schemas.journal import JournalCreate, JournalListResponse, JournalResponse, JournalUpdate
from app.services import journal as journal_service
from app.services.engine import EngineContext, get_engine

router = APIRouter(prefix="/journals", tags=["journals"])


def _entry_to_response(e: JournalEntry) -> JournalResponse:
    return JournalResponse(
        id=e.id,
        title=e.title,
        content=e.content,
        mood=e.mood,
        category=ev(e.category),
        tags=journal_service.tags_of(e),
        privacy=ev(e.privacy),
        word_count=e.word_count,
        reading_time=e.reading_time,
        created_at=iso(e.created_at),
    )


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[JournalResponse],
    summary="Create a journal entry",
)
def create_entry(
    body: JournalCreate,
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    with ctx.unit_of_work():
        entry = journal_service.create_entry(ctx, user.id, **body.model_dump())
    return ok(_entry_to_response(entry), "Journal entry created.")


@router.get(
    "",
    response_model=ApiResponse[JournalListResponse],
    summary="List journal entries",
)
def list_entries(
    category: Optional[JournalCategory] = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    total, items = journal_service.list_entries(
        ctx.db, user.id, category=category.value if category else None, limit=limit, offset=offset
    )
    return ok(JournalListResponse(total=total, items=[_entry_to_response(e) for e in items]))


@router.get(
    "/{entry_id}",
    response_model=ApiResponse[JournalResponse],
    summary="Get a journal entry",
    responses={404: {"model": ErrorResponse}},
)
def get_entry(
    entry_id: int,
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    return ok(_entry_to_response(journal_service.get_entry(ctx.db, user.id, entry_id)))


@router.patch(
    "/{entry_id}",
    response_model=ApiResponse[JournalResponse],
    summary="Edit a journal entry (24h window)",
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def update_entry(
    entry_id: int,
    body: JournalUpdate,
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    with ctx.unit_of_work():
        entry = journal_service.update_entry(
            ctx, user.id, entry_id, **body.model_dump(exclude_unset=True)
        )
    return ok(_entry_to_response(entry), "Journal entry updated.")


@router.delete(
    "/{entry_id}",
    response_model=ApiResponse[None],
    summary="Delete a journal entry",
    responses={404: {"model": ErrorResponse}},
)
def delete_entry(
    entry_id: int,
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    with ctx.unit_of_work():
        journal_service.soft_delete_entry(ctx, user.id, entry_id)
    return ok(None, "Journal entry deleted.")
