"""
Rewards & redemptions router.

GET  /rewards                         — catalog (available only by default)
POST /rewards                         — create reward (hr/admin)
POST /rewards/{id}/redeem             — redeem
GET  /redemptions                     — own redemptions (hr/admin: any user)
POST /redemptions/{id}/cancel         — owner or hr/admin; refunds coins
POST /redemptions/{id}/approve        — hr/admin
POST /redemptions/{id}/fulfill        — hr/admin
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.core.security import get_current_user, require_staff
from app.models.reward import Redemption, RedemptionState, Reward
from app.models.user import User
from app.schemas.common import ApiResponse, ErrorResponse, ev, iso, ok
from app.schemas.reward import (
    RedemptionListResponse,
    RedemptionResponse,
    RewardCreate,
    RewardResponse,
)
from app.services import redemption as redemption_service
from app.services.engine import EngineContext, get_engine

router = APIRouter(tags=["rewards"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _reward_to_response(r: Reward) -> RewardResponse:
    return RewardResponse(
        id=r.id,
        name=r.name,
        description=r.description,
        category=r.category,
        cost=r.cost,
        quantity_remaining=r.quantity_remaining,
        starts_at=iso(r.starts_at),
        ends_at=iso(r.ends_at),
        is_active=r.is_active,
        total_redemptions=r.total_redemptions,
    )


def _redemption_to_response(r: Redemption) -> RedemptionResponse:
    return RedemptionResponse(
        id=r.id,
        user_id=r.user_id,
        reward_id=r.reward_id,
        coins_spent=r.coins_spent,
        redemption_code=r.redemption_code,
        state=ev(r.state),
        requested_at=iso(r.requested_at),
        approved_at=iso(r.approved_at),
        fulfilled_at=iso(r.fulfilled_at),
        cancelled_at=iso(r.cancelled_at),
    )


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

@router.get(
    "/rewards",
    response_model=ApiResponse[list[RewardResponse]],
    summary="List rewards",
)
def list_rewards(
    active_only: bool = Query(default=True, description="Hide inactive, expired and sold-out rewards."),
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    rewards = redemption_service.list_rewards(ctx.db, ctx.clock, active_only=active_only)
    return ok([_reward_to_response(r) for r in rewards])


@router.post(
    "/rewards",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[RewardResponse],
    summary="Create a reward (hr/admin)",
    responses={403: {"model": ErrorResponse}},
)
def create_reward(
    body: RewardCreate,
    user: User = Depends(require_staff),
    ctx: EngineContext = Depends(get_engine),
):
    with ctx.unit_of_work():
        reward = redemption_service.create_reward(ctx.db, **body.model_dump())
    return ok(_reward_to_response(reward), "Reward created.")


@router.post(
    "/rewards/{reward_id}/redeem",
    response_model=ApiResponse[RedemptionResponse],
    summary="Redeem a reward",
    responses={
        400: {"model": ErrorResponse, "description": "Insufficient happy coins."},
        404: {"model": ErrorResponse, "description": "Reward not found."},
        409: {"model": ErrorResponse, "description": "Reward inactive, expired or sold out."},
    },
)
def redeem_reward(
    reward_id: int,
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    with ctx.unit_of_work():
        redemption = redemption_service.redeem(ctx, user.id, reward_id)
    return ok(_redemption_to_response(redemption), "Reward redeemed.")


# ---------------------------------------------------------------------------
# Redemptions
# ---------------------------------------------------------------------------

@router.get(
    "/redemptions",
    response_model=ApiResponse[RedemptionListResponse],
    summary="List redemptions",
)
def list_redemptions(
    state: Optional[RedemptionState] = Query(default=None),
    user_id: Optional[str] = Query(default=None, description="hr/admin only; omit for all users."),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    if ev(user.role) in ("hr", "admin"):
        target = user_id
    else:
        target = user.id
    total, items = redemption_service.list_redemptions(
        ctx.db, user_id=target, state=state.value if state else None, limit=limit, offset=offset
    )
    return ok(RedemptionListResponse(
        total=total, items=[_redemption_to_response(r) for r in items]
    ))


@router.post(
    "/redemptions/{redemption_id}/cancel",
    response_model=ApiResponse[RedemptionResponse],
    summary="Cancel a redemption and refund its coins",
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "Already fulfilled or cancelled."},
    },
)
def cancel_redemption(
    redemption_id: int,
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    with ctx.unit_of_work():
        redemption = redemption_service.cancel(ctx, redemption_id, user)
    return ok(_redemption_to_response(redemption), "Redemption cancelled.")


@router.post(
    "/redemptions/{redemption_id}/approve",
    response_model=ApiResponse[RedemptionResponse],
    summary="Approve a pending redemption (hr/admin)",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def approve_redemption(
    redemption_id: int,
    user: User = Depends(require_staff),
    ctx: EngineContext = Depends(get_engine),
):
    with ctx.unit_of_work():
        redemption = redemption_service.approve(ctx, redemption_id)
    return ok(_redemption_to_response(redemption), "Redemption approved.")


@router.post(
    "/redemptions/{redemption_id}/fulfill",
    response_model=ApiResponse[RedemptionResponse],
    summary="Mark an approved redemption fulfilled (hr/admin)",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def fulfill_redemption(
    redemption_id: int,
    user: User = Depends(require_staff),
    ctx: EngineContext = Depends(get_engine),
):
    with ctx.unit_of_work():
        redemption = redemption_service.fulfill(ctx, redemption_id)
    return ok(_redemption_to_response(redemption), "Redemption fulfilled.")
