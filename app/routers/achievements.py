"""
Achievements router.

GET  /achievements   — catalog with the caller's progress
POST /achievements   — add a catalog entry (admin)
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, status

from app.core.security import get_current_user, require_admin
from app.models.achievement import Achievement
from app.models.user import User
from app.schemas.achievement import (
    AchievementCreate,
    AchievementProgressResponse,
    AchievementResponse,
)
from app.schemas.common import ApiResponse, ErrorResponse, ev, iso, ok
from app.services import achievements as achievement_service
from app.services.engine import EngineContext, get_engine

router = APIRouter(prefix="/achievements", tags=["achievements"])


def _achievement_to_response(a: Achievement) -> AchievementResponse:
    return AchievementResponse(
        id=a.id,
        name=a.name,
        description=a.description,
        category=a.category,
        icon=a.icon,
        criteria_type=ev(a.criteria_type),
        criteria_value=a.criteria_value,
        rarity=a.rarity,
        happy_coins_reward=a.happy_coins_reward,
    )


@router.get(
    "",
    response_model=ApiResponse[list[AchievementProgressResponse]],
    summary="Achievement catalog with progress",
)
def list_achievements(
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    progress = achievement_service.achievement_progress(ctx.db, ctx.clock, user.id)
    return ok([
        AchievementProgressResponse(
            achievement=_achievement_to_response(p.achievement),
            earned=p.earned,
            earned_at=iso(p.earned_at),
            current=p.current,
            target=p.target,
            percentage=p.percentage,
        )
        for p in progress
    ])


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[AchievementResponse],
    summary="Create an achievement (admin)",
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def create_achievement(
    body: AchievementCreate,
    user: User = Depends(require_admin),
    ctx: EngineContext = Depends(get_engine),
):
    with ctx.unit_of_work():
        achievement = achievement_service.create_achievement(ctx.db, **body.model_dump())
    return ok(_achievement_to_response(achievement), "Achievement created.")
