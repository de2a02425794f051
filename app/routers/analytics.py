"""
Analytics router. Overview is hr/admin only; the leaderboard is open to every user.

GET /analytics/overview            — participation, mood, risk, streak and coin figures
GET /analytics/coins/{user_id}     — stored balance vs mutation log (staff or self)
GET /analytics/leaderboard         — happy-coin ranking, global or per department (any user)
"""
from __future__ import annotations

from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.core.errors import ForbiddenError
from app.core.security import get_current_user, require_staff
from app.models.user import User, UserRole
from app.schemas.analytics import CoinAuditResponse, LeaderboardResponse, OverviewResponse
from app.schemas.common import ApiResponse, ErrorResponse, ev, ok
from app.services import analytics as analytics_service
from app.services.engine import EngineContext, get_engine
from app.services.users import get_user

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get(
    "/overview",
    response_model=ApiResponse[OverviewResponse],
    summary="Engagement overview (hr/admin)",
    responses={403: {"model": ErrorResponse}},
)
def overview(
    days: int = Query(default=30, ge=1, le=365),
    department: Optional[str] = Query(default=None),
    user: User = Depends(require_staff),
    ctx: EngineContext = Depends(get_engine),
):
    report = analytics_service.overview(ctx.db, ctx.clock, days=days, department=department)
    return ok(OverviewResponse(**asdict(report)))


@router.get(
    "/coins/{user_id}",
    response_model=ApiResponse[CoinAuditResponse],
    summary="Coin balance audit",
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def coin_audit(
    user_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    if user_id != user.id and ev(user.role) not in (UserRole.hr.value, UserRole.admin.value):
        raise ForbiddenError()
    get_user(ctx.db, user_id)
    return ok(CoinAuditResponse(**analytics_service.coin_audit(ctx.db, ctx.store, user_id, limit=limit)))


@router.get(
    "/leaderboard",
    response_model=ApiResponse[LeaderboardResponse],
    summary="Happy-coin leaderboard",
)
def leaderboard(
    department: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    board = analytics_service.leaderboard(
        ctx.db, department=department, limit=limit, offset=offset, user_id=user.id
    )
    message = f"{department} department leaderboard" if department else "Happy Coins leaderboard"
    return ok(LeaderboardResponse(**asdict(board)), message)
