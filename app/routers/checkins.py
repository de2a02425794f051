"""
Check-in router.

POST  /checkins         — submit today's check-in
GET   /checkins/today   — today's check-in (data = null when none)
GET   /checkins         — history + pagination + mood statistics
GET   /checkins/trend   — day-by-day mood and direction
PATCH /checkins/{id}    — edit feedback (same UTC day only)
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.models.checkin import CheckIn, MOOD_LABELS
from app.models.user import User
from app.core.security import get_current_user
from app.schemas.checkin import (
    CheckInCreate,
    CheckInHistoryResponse,
    CheckInResponse,
    CheckInSubmitResponse,
    CoinBreakdown,
    FeedbackUpdate,
    MoodStatsResponse,
    MoodTrendResponse,
    PageInfo,
    TrendPointResponse,
    WellnessSnapshot,
)
from app.schemas.common import ApiResponse, ErrorResponse, ev, iso, ok
from app.services import checkin as checkin_service
from app.services.engine import EngineContext, get_engine

router = APIRouter(prefix="/checkins", tags=["checkins"])


# ---------------------------------------------------------------------------
# Serialization helper
# ---------------------------------------------------------------------------

def _checkin_to_response(row: CheckIn) -> CheckInResponse:
    return CheckInResponse(
        id=row.id,
        day=row.day.isoformat(),
        mood=row.mood,
        mood_label=MOOD_LABELS[row.mood],
        feedback=row.feedback,
        source=ev(row.source),
        happy_coins_earned=row.happy_coins_earned,
        streak_at_checkin=row.streak_at_checkin,
        created_at=iso(row.created_at),
    )


# ---------------------------------------------------------------------------
# POST /checkins
# ---------------------------------------------------------------------------

@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[CheckInSubmitResponse],
    summary="Submit today's mood check-in",
    responses={
        400: {"model": ErrorResponse, "description": "Invalid mood / feedback."},
        409: {"model": ErrorResponse, "description": "Already checked in today (existing row in `data`)."},
    },
)
def submit_check_in(
    body: CheckInCreate,
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    """
    One check-in per user per UTC day.

    ### Coins
    | Component | Amount |
    |---|---|
    | daily check-in | 50 |
    | non-empty feedback | +10 |
    | mood ≥ 4 | +5 |
    | streak reaches 7 / 30 / 90 | +100 / +500 / +1500 |
    """
    with ctx.unit_of_work():
        result = checkin_service.submit_check_in(
            ctx, user.id, body.mood, body.feedback, body.source
        )
    data = CheckInSubmitResponse(
        check_in=_checkin_to_response(result.check_in),
        wellness=WellnessSnapshot(**result.aggregate.to_dict()),
        coins=CoinBreakdown(**result.coins.to_dict()),
    )
    return ok(data, f"Check-in recorded. +{result.coins.total} happy coins.")


# ---------------------------------------------------------------------------
# GET /checkins/today
# ---------------------------------------------------------------------------

@router.get(
    "/today",
    response_model=ApiResponse[Optional[CheckInResponse]],
    summary="Today's check-in, if any",
)
def get_today(
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    row = checkin_service.find_today(ctx.db, ctx.clock, user.id)
    if row is None:
        return ok(None, "No check-in yet today.")
    return ok(_checkin_to_response(row))


# ---------------------------------------------------------------------------
# GET /checkins/trend
# ---------------------------------------------------------------------------

@router.get(
    "/trend",
    response_model=ApiResponse[MoodTrendResponse],
    summary="Mood trend over the last N days",
)
def get_trend(
    days: int = Query(default=7, ge=1, le=365, description="Window length in days."),
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    """
    Direction compares the mean of the last 3 entries with the mean of the
    older ones: > +0.3 improving, < -0.3 declining, otherwise stable.
    """
    trend = checkin_service.mood_trend(ctx.db, ctx.clock, user.id, days)
    return ok(MoodTrendResponse(
        days=trend.days,
        trend=[
            TrendPointResponse(day=p.day.isoformat(), mood=p.mood, mood_label=MOOD_LABELS[p.mood])
            for p in trend.points
        ],
        direction=trend.direction,
        change=trend.change,
        average=trend.average,
    ))


# ---------------------------------------------------------------------------
# GET /checkins
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=ApiResponse[CheckInHistoryResponse],
    summary="Check-in history with mood statistics",
)
def list_check_ins(
    start_date: Optional[date] = Query(default=None, alias="startDate", examples=["2024-03-01"]),
    end_date: Optional[date] = Query(default=None, alias="endDate", examples=["2024-03-31"]),
    limit: int = Query(default=30, ge=1, le=100, description="Page size."),
    page: int = Query(default=1, ge=1),
    cursor: Optional[str] = Query(default=None, description="`next_cursor` of the previous page."),
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    result = checkin_service.list_by_user(
        ctx.db, user.id, start=start_date, end=end_date, limit=limit, page=page, cursor=cursor
    )
    stats = result.stats
    return ok(CheckInHistoryResponse(
        items=[_checkin_to_response(r) for r in result.items],
        pagination=PageInfo(
            total=result.total,
            page=result.page,
            pages=result.pages,
            limit=result.limit,
            next_cursor=result.next_cursor,
        ),
        stats=MoodStatsResponse(
            total_checkins=stats.total_checkins,
            average_mood=stats.average_mood,
            total_happy_coins=stats.total_happy_coins,
            mood_distribution=stats.mood_distribution,
        ),
    ))


# ---------------------------------------------------------------------------
# PATCH /checkins/{check_in_id}
# ---------------------------------------------------------------------------

@router.patch(
    "/{check_in_id}",
    response_model=ApiResponse[CheckInResponse],
    summary="Edit today's feedback",
    responses={
        400: {"model": ErrorResponse, "description": "Check-in is not from today."},
        404: {"model": ErrorResponse},
    },
)
def update_feedback(
    check_in_id: int,
    body: FeedbackUpdate,
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    with ctx.unit_of_work():
        row = checkin_service.update_feedback(ctx, user.id, check_in_id, body.feedback)
    return ok(_checkin_to_response(row), "Feedback updated.")
