"""
Check-in Ledger.

submit_check_in (one transaction, inside the caller's unit of work)
-------------------------------------------------------------------
  1. D := clock.today()
  2. insert (user_id, D) with happy_coins_earned = 0
     → existing row or unique violation ⇒ AlreadyCheckedInError(existing)
  3. update_atomically(user_id):
       streak advance, coins = base + feedback + mood + streak bonus,
       last_checkin_day = D, average_mood / risk over [D-29, D]
  4. finalize the row (happy_coins_earned, streak_at_checkin)
  5. publish CheckInApplied; outbox: CHECK_IN_COMPLETED, HAPPY_COINS_EARNED,
     STREAK_MILESTONE (bonus > 0), RISK_ALERT to HR (level rose to high)

A failure anywhere after step 2 rolls the insert back with the transaction.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, TYPE_CHECKING

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.errors import AlreadyCheckedInError, NotFoundError, ValidationFailedError
from app.models.checkin import CheckIn, CheckInSource, MOOD_LABELS
from app.models.coin_mutation import CoinSource
from app.models.notification import NotificationType
from app.models.user import RiskLevel, User, UserRole
from app.schemas.common import ev
from app.services.aggregate_store import WellnessAggregate
from app.services.coins import CheckInCoins, checkin_coins
from app.services.events import DomainEvent, EventKind
from app.services.streak import StreakAdvance, advance

if TYPE_CHECKING:
    from app.services.engine import EngineContext

logger = logging.getLogger(__name__)

MOOD_WINDOW_DAYS = 30
MAX_FEEDBACK_LENGTH = 500
TREND_THRESHOLD = 0.3


def check_in_to_dict(row: CheckIn) -> dict:
    return {
        "id": row.id,
        "day": row.day.isoformat(),
        "mood": row.mood,
        "mood_label": MOOD_LABELS[row.mood],
        "feedback": row.feedback,
        "source": ev(row.source),
        "happy_coins_earned": row.happy_coins_earned,
        "streak_at_checkin": row.streak_at_checkin,
    }


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class CheckInResult:
    check_in: CheckIn
    aggregate: WellnessAggregate
    coins: CheckInCoins
    streak: StreakAdvance


@dataclass
class MoodStats:
    total_checkins: int
    average_mood: Optional[float]
    total_happy_coins: int
    mood_distribution: dict[int, int]


@dataclass
class CheckInPage:
    items: list[CheckIn]
    total: int
    page: int
    pages: int
    limit: int
    next_cursor: Optional[str]
    stats: MoodStats


@dataclass
class TrendPoint:
    day: date
    mood: int


@dataclass
class MoodTrend:
    days: int
    points: list[TrendPoint]
    direction: str      # improving | declining | stable
    change: float
    average: float


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _find_by_day(db: Session, user_id: str, day: date) -> Optional[CheckIn]:
    return (
        db.query(CheckIn)
        .filter(CheckIn.user_id == user_id, CheckIn.day == day)
        .first()
    )


def _window_moods(db: Session, user_id: str, today: date) -> list[int]:
    """Moods in [today-29, today], oldest first."""
    start = today - timedelta(days=MOOD_WINDOW_DAYS - 1)
    rows = (
        db.query(CheckIn.mood)
        .filter(CheckIn.user_id == user_id, CheckIn.day >= start, CheckIn.day <= today)
        .order_by(CheckIn.day.asc())
        .all()
    )
    return [r.mood for r in rows]


def mean_mood(moods: list[int]) -> Optional[Decimal]:
    if not moods:
        return None
    avg = Decimal(sum(moods)) / Decimal(len(moods))
    return avg.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


def _validate_input(mood: int, feedback: Optional[str]) -> Optional[str]:
    if isinstance(mood, bool) or not isinstance(mood, int) or not 1 <= mood <= 5:
        raise ValidationFailedError(
            "Mood must be an integer between 1 and 5.", {"field": "mood"}
        )
    if feedback is None:
        return None
    feedback = feedback.strip()
    if len(feedback) > MAX_FEEDBACK_LENGTH:
        raise ValidationFailedError(
            f"Feedback cannot exceed {MAX_FEEDBACK_LENGTH} characters.", {"field": "feedback"}
        )
    return feedback or None


def _hr_recipients(db: Session, exclude: str) -> list[str]:
    return [
        uid for (uid,) in db.query(User.id).filter(
            User.role.in_([UserRole.hr, UserRole.admin]),
            User.is_active.is_(True),
            User.id != exclude,
        )
    ]


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------

def submit_check_in(
    ctx: "EngineContext",
    user_id: str,
    mood: int,
    feedback: Optional[str] = None,
    source: CheckInSource | str = CheckInSource.web,
) -> CheckInResult:
    db = ctx.db
    feedback = _validate_input(mood, feedback)
    source = CheckInSource(source)
    today = ctx.clock.today()
    now = ctx.clock.now()

    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)

    existing = _find_by_day(db, user_id, today)
    if existing is not None:
        raise AlreadyCheckedInError(check_in_to_dict(existing))

    row = CheckIn(
        user_id=user_id,
        day=today,
        mood=mood,
        feedback=feedback,
        source=source,
        happy_coins_earned=0,
        streak_at_checkin=0,
        created_at=now,
        updated_at=now,
    )
    db.add(row)
    try:
        db.flush()
    except IntegrityError:
        # Lost the race to a concurrent same-day submission.
        db.rollback()
        existing = _find_by_day(db, user_id, today)
        raise AlreadyCheckedInError(check_in_to_dict(existing) if existing else {})

    moods = _window_moods(db, user_id, today)
    average = mean_mood(moods)
    assessment = ctx.risk_classifier.classify(moods)
    outcome: dict = {}

    def apply(agg: WellnessAggregate) -> WellnessAggregate:
        step = advance(agg, today)
        coins = checkin_coins(mood, feedback, step.bonus, ctx.settings)
        outcome.update(step=step, coins=coins, previous_risk=agg.risk_level)
        return replace(
            agg,
            coin_balance=agg.coin_balance + coins.total,
            current_streak=step.new_streak,
            longest_streak=step.new_longest,
            last_checkin_day=today,
            average_mood=average,
            risk_level=assessment.level.value,
            risk_score=assessment.score,
        )

    aggregate = ctx.store.update_atomically(
        user_id, apply, source=CoinSource.checkin, reference=f"checkin:{row.id}"
    )
    step: StreakAdvance = outcome["step"]
    coins: CheckInCoins = outcome["coins"]

    row.happy_coins_earned = coins.total
    row.streak_at_checkin = step.new_streak

    ctx.publish(DomainEvent(
        EventKind.CHECKIN_APPLIED,
        user_id,
        reference=f"checkin:{row.id}",
        payload={"day": today.isoformat(), "mood": mood},
    ))

    ctx.outbox.emit(user_id, NotificationType.CHECK_IN_COMPLETED, {
        "mood": mood,
        "mood_label": MOOD_LABELS[mood],
        "streak": step.new_streak,
    })
    ctx.outbox.emit(user_id, NotificationType.HAPPY_COINS_EARNED, {
        "coins": coins.total,
        "reason": "checking in today",
        "source": CoinSource.checkin.value,
    })
    if step.bonus > 0:
        ctx.outbox.emit(user_id, NotificationType.STREAK_MILESTONE, {
            "streak": step.new_streak,
            "bonus": step.bonus,
        })
    if assessment.level == RiskLevel.high and outcome["previous_risk"] != RiskLevel.high.value:
        for hr_id in _hr_recipients(db, exclude=user_id):
            ctx.outbox.emit(hr_id, NotificationType.RISK_ALERT, {
                "employee_id": user_id,
                "employee_name": user.name,
                "risk_level": assessment.level.value,
                "risk_score": str(assessment.score),
            })

    check_in_id = row.id
    ctx.after_commit(
        lambda: ctx.enrichment.enrich_check_in(user_id, check_in_id, mood, feedback)
    )

    logger.debug("Check-in %s for user %s: +%d coins", check_in_id, user_id, coins.total)
    return CheckInResult(check_in=row, aggregate=aggregate, coins=coins, streak=step)


def update_feedback(
    ctx: "EngineContext", user_id: str, check_in_id: int, feedback: Optional[str]
) -> CheckIn:
    """Only feedback is editable, and only on the check-in's own UTC day."""
    row = ctx.db.get(CheckIn, check_in_id)
    if row is None or row.user_id != user_id:
        raise NotFoundError("CheckIn", check_in_id)
    if row.day != ctx.clock.today():
        raise ValidationFailedError(
            "Feedback can only be edited on the day of the check-in.",
            {"day": row.day.isoformat()},
        )
    if feedback is not None:
        feedback = feedback.strip()
        if len(feedback) > MAX_FEEDBACK_LENGTH:
            raise ValidationFailedError(
                f"Feedback cannot exceed {MAX_FEEDBACK_LENGTH} characters.", {"field": "feedback"}
            )
    row.feedback = feedback or None
    row.updated_at = ctx.clock.now()
    return row


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------

def find_today(db: Session, clock: Clock, user_id: str) -> Optional[CheckIn]:
    return _find_by_day(db, user_id, clock.today())


def _mood_stats(query) -> MoodStats:
    rows = (
        query.with_entities(CheckIn.mood, func.count(CheckIn.id), func.sum(CheckIn.happy_coins_earned))
        .group_by(CheckIn.mood)
        .all()
    )
    distribution = {m: 0 for m in range(1, 6)}
    total = coins = mood_sum = 0
    for mood, count, coin_sum in rows:
        distribution[mood] = count
        total += count
        mood_sum += mood * count
        coins += int(coin_sum or 0)
    return MoodStats(
        total_checkins=total,
        average_mood=round(mood_sum / total, 2) if total else None,
        total_happy_coins=coins,
        mood_distribution=distribution,
    )


def list_by_user(
    db: Session,
    user_id: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
    limit: int = 30,
    page: int = 1,
    cursor: Optional[str] = None,
) -> CheckInPage:
    """
    Newest first. `cursor` (the `next_cursor` of a previous page) continues
    after the given day and takes precedence over `page`.
    """
    if start and end and start > end:
        raise ValidationFailedError("startDate must not be after endDate.")

    q = db.query(CheckIn).filter(CheckIn.user_id == user_id)
    if start:
        q = q.filter(CheckIn.day >= start)
    if end:
        q = q.filter(CheckIn.day <= end)

    stats = _mood_stats(q)
    total = stats.total_checkins
    pages = max(1, -(-total // limit))

    ordered = q.order_by(CheckIn.day.desc())
    if cursor:
        try:
            after = date.fromisoformat(cursor)
        except ValueError:
            raise ValidationFailedError("Invalid cursor.", {"cursor": cursor})
        items = ordered.filter(CheckIn.day < after).limit(limit + 1).all()
    else:
        items = ordered.offset((page - 1) * limit).limit(limit + 1).all()

    next_cursor = None
    if len(items) > limit:
        items = items[:limit]
        next_cursor = items[-1].day.isoformat()

    return CheckInPage(
        items=items,
        total=total,
        page=page,
        pages=pages,
        limit=limit,
        next_cursor=next_cursor,
        stats=stats,
    )


def trend_direction(moods: list[int]) -> tuple[str, float, float]:
    """(direction, change, average): last 3 entries vs the older ones."""
    if len(moods) < 2:
        return "stable", 0.0, float(moods[0]) if moods else 0.0
    recent = moods[-3:]
    older = moods[:-3]
    recent_avg = sum(recent) / len(recent)
    older_avg = sum(older) / len(older) if older else recent_avg
    change = recent_avg - older_avg
    if change > TREND_THRESHOLD:
        direction = "improving"
    elif change < -TREND_THRESHOLD:
        direction = "declining"
    else:
        direction = "stable"
    return direction, round(change, 2), round(sum(moods) / len(moods), 2)


def mood_trend(db: Session, clock: Clock, user_id: str, days: int = 7) -> MoodTrend:
    today = clock.today()
    start = today - timedelta(days=days - 1)
    rows = (
        db.query(CheckIn.day, CheckIn.mood)
        .filter(CheckIn.user_id == user_id, CheckIn.day >= start, CheckIn.day <= today)
        .order_by(CheckIn.day.asc())
        .all()
    )
    points = [TrendPoint(day=r.day, mood=r.mood) for r in rows]
    direction, change, average = trend_direction([p.mood for p in points])
    return MoodTrend(days=days, points=points, direction=direction, change=change, average=average)
