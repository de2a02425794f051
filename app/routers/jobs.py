"""
Scheduled jobs, triggered by an external cron (admin).

POST /jobs/streak-warnings   — REMINDER_CRON (default hourly)
POST /jobs/lost-streaks      — LOST_STREAK_CRON (default daily 09:00 UTC)
POST /jobs/outbox-dispatch   — retry pending external deliveries
GET  /jobs/schedule          — the configured cron expressions
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.core.security import require_admin
from app.models.user import User
from app.schemas.analytics import DispatchReportResponse, ScanReportResponse, ScheduleResponse
from app.schemas.common import ApiResponse, ok
from app.services import streak_scanner
from app.services.engine import EngineContext, get_engine

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post(
    "/streak-warnings",
    response_model=ApiResponse[ScanReportResponse],
    summary="Warn users whose streak ends at midnight",
)
def run_streak_warnings(
    user: User = Depends(require_admin),
    ctx: EngineContext = Depends(get_engine),
):
    report = streak_scanner.scan_streak_warnings(ctx)
    return ok(ScanReportResponse(**report.to_dict()))


@router.post(
    "/lost-streaks",
    response_model=ApiResponse[ScanReportResponse],
    summary="Notify and reset recently broken streaks",
)
def run_lost_streaks(
    user: User = Depends(require_admin),
    ctx: EngineContext = Depends(get_engine),
):
    report = streak_scanner.scan_lost_streaks(ctx)
    return ok(ScanReportResponse(**report.to_dict()))


@router.post(
    "/outbox-dispatch",
    response_model=ApiResponse[DispatchReportResponse],
    summary="Deliver pending external notifications",
)
def run_outbox_dispatch(
    limit: int = Query(default=100, ge=1, le=1000),
    user: User = Depends(require_admin),
    ctx: EngineContext = Depends(get_engine),
):
    report = ctx.outbox.dispatch_pending(limit=limit)
    return ok(DispatchReportResponse(**report.to_dict()))


@router.get(
    "/schedule",
    response_model=ApiResponse[ScheduleResponse],
    summary="Configured job schedule",
)
def schedule(
    user: User = Depends(require_admin),
    ctx: EngineContext = Depends(get_engine),
):
    return ok(ScheduleResponse(
        streak_warnings=ctx.settings.REMINDER_CRON,
        lost_streaks=ctx.settings.LOST_STREAK_CRON,
    ))
