"""
Peer recognition router.

POST /recognitions  — send recognition (recipient credited)
GET  /recognitions  — received / sent / all
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from app.core.security import get_current_user
from app.models.recognition import Recognition
from app.models.user import User
from app.schemas.common import ApiResponse, ErrorResponse, ev, iso, ok
from app.schemas.recognition import (
    RecognitionCreate,
    RecognitionListResponse,
    RecognitionResponse,
)
from app.services import recognition as recognition_service
from app.services.engine import EngineContext, get_engine

router = APIRouter(prefix="/recognitions", tags=["recognitions"])


def _recognition_to_response(r: Recognition) -> RecognitionResponse:
    return RecognitionResponse(
        id=r.id,
        from_user_id=r.from_user_id,
        to_user_id=r.to_user_id,
        type=ev(r.type),
        message=r.message,
        happy_coins_awarded=r.happy_coins_awarded,
        created_at=iso(r.created_at),
    )


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[RecognitionResponse],
    summary="Recognize a colleague",
    responses={
        400: {"model": ErrorResponse, "description": "Self-recognition or invalid payload."},
        404: {"model": ErrorResponse, "description": "Recipient not found."},
    },
)
def send_recognition(
    body: RecognitionCreate,
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    """
    ### Coins credited to the recipient
    | Type | Coins |
    |---|---|
    | `thank_you` | 15 |
    | `kudos` | 20 |
    | `great_job` | 25 |
    | `team_player` | 30 |
    | `innovation` | 40 |
    | `leadership` | 50 |
    """
    with ctx.unit_of_work():
        row = recognition_service.send(ctx, user.id, body.to_user_id, body.type, body.message)
    return ok(_recognition_to_response(row), "Recognition sent.")


@router.get(
    "",
    response_model=ApiResponse[RecognitionListResponse],
    summary="List recognitions",
)
def list_recognitions(
    direction: str = Query(default="received", pattern="^(received|sent|all)$"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    total, items = recognition_service.list_recognitions(
        ctx.db, user.id, direction=direction, limit=limit, offset=offset
    )
    return ok(RecognitionListResponse(
        total=total, items=[_recognition_to_response(r) for r in items]
    ))
