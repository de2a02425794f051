"""
Reward catalog & redemption state machine.

    pending ──approve──▶ approved ──fulfill──▶ fulfilled
       │                     │
       └──cancel──▶ cancelled ◀──cancel──┘

redeem()  : availability check → conditional quantity decrement →
            Redemption(pending) → debit via update_atomically, one transaction
cancel()  : conditional state update (pending|approved → cancelled) → refund
            of coins_spent. quantity_remaining is not restored.
approve() / fulfill() : timestamps only, no coin movement.

Every state change is a conditional UPDATE on the current state, so two
racing transitions cannot both succeed (one refund per cancellation).
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import replace
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.clock import Clock, as_utc
from app.core.errors import (
    ForbiddenError,
    InsufficientCoinsError,
    InvalidTransitionError,
    NotFoundError,
    RewardUnavailableError,
    ValidationFailedError,
)
from app.models.coin_mutation import CoinSource
from app.models.notification import NotificationType
from app.models.reward import UNLIMITED_QUANTITY, Redemption, RedemptionState, Reward
from app.models.user import User, UserRole
from app.schemas.common import ev
from app.services.aggregate_store import WellnessAggregate
from app.services.events import DomainEvent, EventKind

if TYPE_CHECKING:
    from app.services.engine import EngineContext

logger = logging.getLogger(__name__)

CODE_PREFIX = "WA-"
_STAFF_ROLES = (UserRole.hr.value, UserRole.admin.value)


def _is_staff(user: User) -> bool:
    return ev(user.role) in _STAFF_ROLES


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

def create_reward(
    db: Session,
    name: str,
    cost: int,
    description: Optional[str] = None,
    category: str = "wellness",
    quantity_remaining: int = UNLIMITED_QUANTITY,
    starts_at: Optional[datetime] = None,
    ends_at: Optional[datetime] = None,
    is_active: bool = True,
) -> Reward:
    if cost < 0:
        raise ValidationFailedError("Reward cost cannot be negative.", {"field": "cost"})
    if quantity_remaining < UNLIMITED_QUANTITY:
        raise ValidationFailedError(
            "quantity_remaining must be -1 (unlimited) or a non-negative count.",
            {"field": "quantity_remaining"},
        )
    if starts_at and ends_at and as_utc(starts_at) >= as_utc(ends_at):
        raise ValidationFailedError("starts_at must be before ends_at.", {"field": "ends_at"})
    reward = Reward(
        name=name,
        description=description,
        category=category,
        cost=cost,
        quantity_remaining=quantity_remaining,
        starts_at=starts_at,
        ends_at=ends_at,
        is_active=is_active,
        total_redemptions=0,
    )
    db.add(reward)
    db.flush()
    return reward


def unavailable_reason(reward: Reward, now: datetime) -> Optional[str]:
    if not reward.is_active:
        return "inactive"
    if reward.starts_at is not None and now < as_utc(reward.starts_at):
        return "not yet available"
    if reward.ends_at is not None and now > as_utc(reward.ends_at):
        return "expired"
    if reward.quantity_remaining == 0:
        return "sold out"
    return None


def list_rewards(db: Session, clock: Clock, active_only: bool = True) -> list[Reward]:
    rewards = db.query(Reward).order_by(Reward.cost.asc(), Reward.id.asc()).all()
    if not active_only:
        return rewards
    now = clock.now()
    return [r for r in rewards if unavailable_reason(r, now) is None]


# ---------------------------------------------------------------------------
# Redemption
# ---------------------------------------------------------------------------

def _new_code(db: Session) -> str:
    while True:
        code = CODE_PREFIX + secrets.token_hex(8).upper()
        if db.query(Redemption.id).filter(Redemption.redemption_code == code).first() is None:
            return code


def redeem(ctx: "EngineContext", user_id: str, reward_id: int) -> Redemption:
    db = ctx.db
    now = ctx.clock.now()

    reward = db.get(Reward, reward_id)
    if reward is None:
        raise NotFoundError("Reward", reward_id)
    reason = unavailable_reason(reward, now)
    if reason:
        raise RewardUnavailableError(reward_id, reason)
    cost, reward_name = reward.cost, reward.name

    stmt = update(Reward).where(Reward.id == reward_id)
    if reward.quantity_remaining != UNLIMITED_QUANTITY:
        stmt = stmt.where(Reward.quantity_remaining > 0).values(
            quantity_remaining=Reward.quantity_remaining - 1,
            total_redemptions=Reward.total_redemptions + 1,
        )
    else:
        stmt = stmt.values(total_redemptions=Reward.total_redemptions + 1)
    if db.execute(stmt.execution_options(synchronize_session=False)).rowcount != 1:
        raise RewardUnavailableError(reward_id, "sold out")
    db.expire(reward)

    redemption = Redemption(
        user_id=user_id,
        reward_id=reward_id,
        coins_spent=cost,
        redemption_code=_new_code(db),
        state=RedemptionState.pending,
        requested_at=now,
    )
    db.add(redemption)
    db.flush()

    def debit(agg: WellnessAggregate) -> WellnessAggregate:
        if agg.coin_balance < cost:
            raise InsufficientCoinsError(agg.coin_balance, cost)
        return replace(agg, coin_balance=agg.coin_balance - cost)

    ctx.store.update_atomically(
        user_id, debit, source=CoinSource.redemption, reference=f"redemption:{redemption.id}"
    )

    ctx.outbox.emit(user_id, NotificationType.REWARD_REDEEMED, {
        "reward_id": reward_id,
        "reward_name": reward_name,
        "coins": cost,
        "code": redemption.redemption_code,
    })
    logger.info(
        "User %s redeemed reward %s for %d coins (redemption %s)",
        user_id, reward_id, cost, redemption.id,
    )
    return redemption


def _get_redemption(db: Session, redemption_id: int) -> Redemption:
    redemption = db.get(Redemption, redemption_id)
    if redemption is None:
        raise NotFoundError("Redemption", redemption_id)
    return redemption


def _transition(
    ctx: "EngineContext",
    redemption: Redemption,
    allowed_from: tuple[RedemptionState, ...],
    target: RedemptionState,
    timestamp_field: str,
) -> None:
    current = ev(redemption.state)
    if current not in {s.value for s in allowed_from}:
        raise InvalidTransitionError("Redemption", current, target.value)
    result = ctx.db.execute(
        update(Redemption)
        .where(Redemption.id == redemption.id, Redemption.state.in_(allowed_from))
        .values(state=target, **{timestamp_field: ctx.clock.now()})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        ctx.db.refresh(redemption)
        raise InvalidTransitionError("Redemption", ev(redemption.state), target.value)
    ctx.db.expire(redemption)
    logger.info("Redemption %s: %s -> %s", redemption.id, current, target.value)


def cancel(ctx: "EngineContext", redemption_id: int, actor: User) -> Redemption:
    redemption = _get_redemption(ctx.db, redemption_id)
    if redemption.user_id != actor.id and not _is_staff(actor):
        raise ForbiddenError("Only the owner or HR can cancel this redemption.")
    owner_id, coins, code = redemption.user_id, redemption.coins_spent, redemption.redemption_code

    _transition(
        ctx, redemption,
        (RedemptionState.pending, RedemptionState.approved),
        RedemptionState.cancelled,
        "cancelled_at",
    )
    ctx.store.update_atomically(
        owner_id,
        lambda agg: replace(agg, coin_balance=agg.coin_balance + coins),
        source=CoinSource.refund,
        reference=f"redemption:{redemption_id}",
    )
    ctx.outbox.emit(owner_id, NotificationType.SYSTEM_UPDATE, {
        "title": "Redemption Cancelled",
        "message": f"Redemption {code} was cancelled and {coins} happy coins were refunded.",
        "redemption_id": redemption_id,
    })
    return redemption


def approve(ctx: "EngineContext", redemption_id: int) -> Redemption:
    redemption = _get_redemption(ctx.db, redemption_id)
    _transition(ctx, redemption, (RedemptionState.pending,), RedemptionState.approved, "approved_at")
    return redemption


def fulfill(ctx: "EngineContext", redemption_id: int) -> Redemption:
    redemption = _get_redemption(ctx.db, redemption_id)
    _transition(ctx, redemption, (RedemptionState.approved,), RedemptionState.fulfilled, "fulfilled_at")
    ctx.publish(DomainEvent(
        EventKind.REDEMPTION_COMPLETED,
        redemption.user_id,
        reference=f"redemption:{redemption_id}",
    ))
    return redemption


def list_redemptions(
    db: Session,
    user_id: Optional[str] = None,
    state: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[int, list[Redemption]]:
    q = db.query(Redemption)
    if user_id:
        q = q.filter(Redemption.user_id == user_id)
    if state:
        q = q.filter(Redemption.state == RedemptionState(state))
    total = q.count()
    items = (
        q.order_by(Redemption.requested_at.desc(), Redemption.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return total, items
