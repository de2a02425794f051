"""
Notifications router (in-app inbox; reminders are polled).

GET  /notifications               — newest first, expired hidden
POST /notifications/{id}/read     — mark one read
POST /notifications/read-all      — mark all read
POST /notifications/broadcast     — SURVEY_AVAILABLE / CHALLENGE_JOINED / SYSTEM_UPDATE (hr/admin)
"""
from __future__ import annotations

import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from app.core.security import get_current_user, require_staff
from app.models.notification import Notification
from app.models.user import User
from app.schemas.common import ApiResponse, ErrorResponse, ev, iso, ok
from app.schemas.notification import (
    BroadcastRequest,
    NotificationListResponse,
    NotificationResponse,
)
from app.services import outbox as outbox_service
from app.services.engine import EngineContext, get_engine

router = APIRouter(prefix="/notifications", tags=["notifications"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _parse_payload(raw: Optional[str]) -> Optional[dict[str, Any]]:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (ValueError, TypeError):
        return None


def _notification_to_response(n: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=n.id,
        type=ev(n.type),
        title=n.title,
        message=n.message,
        payload=_parse_payload(n.payload),
        priority=ev(n.priority),
        is_read=n.is_read,
        read_at=iso(n.read_at),
        expires_at=iso(n.expires_at),
        created_at=iso(n.created_at),
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=ApiResponse[NotificationListResponse],
    summary="List notifications",
)
def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    total, unread, items = outbox_service.list_notifications(
        ctx.db, ctx.clock, user.id, unread_only=unread_only, limit=limit, offset=offset
    )
    return ok(NotificationListResponse(
        total=total,
        unread=unread,
        items=[_notification_to_response(n) for n in items],
    ))


@router.post(
    "/read-all",
    response_model=ApiResponse[dict],
    summary="Mark all notifications read",
)
def mark_all_read(
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    with ctx.unit_of_work():
        count = outbox_service.mark_all_read(ctx.db, ctx.clock, user.id)
    return ok({"updated": count})


@router.post(
    "/{notification_id}/read",
    response_model=ApiResponse[NotificationResponse],
    summary="Mark a notification read",
    responses={404: {"model": ErrorResponse}},
)
def mark_read(
    notification_id: int,
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    with ctx.unit_of_work():
        notification = outbox_service.mark_read(ctx.db, ctx.clock, user.id, notification_id)
    return ok(_notification_to_response(notification))


@router.post(
    "/broadcast",
    response_model=ApiResponse[dict],
    summary="Broadcast a notification (hr/admin)",
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def broadcast(
    body: BroadcastRequest,
    user: User = Depends(require_staff),
    ctx: EngineContext = Depends(get_engine),
):
    with ctx.unit_of_work():
        sent = outbox_service.broadcast(ctx.outbox, ctx.db, body.user_ids, body.type, body.payload)
    return ok({"sent": sent}, f"Notification sent to {sent} users.")
