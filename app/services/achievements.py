"""
Milestone & Achievement Evaluator.

Runs as a domain-event listener inside the unit of work that produced the
event (CheckInApplied, JournalCreated, RecognitionSent, RedemptionCompleted,
SurveyCompleted).

For every active achievement the user has not earned yet:
  progress(criteria_type) >= criteria_value
    → insert UserAchievement
    → credit happy_coins_reward via update_atomically (source=achievement)
    → ACHIEVEMENT_EARNED (+ MILESTONE_ACHIEVED for category "milestone")

Idempotency
-----------
Already-earned achievements are filtered out before evaluation, so a
replayed or duplicated event inserts nothing. The unique
(user_id, achievement_id) constraint is the final guard: the insert runs in a
SAVEPOINT, and a concurrent transaction that won the race makes it a no-op
(no coins, no notification).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Callable, Optional, TYPE_CHECKING

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.errors import ValidationFailedError
from app.models.achievement import Achievement, CriteriaType, UserAchievement
from app.models.checkin import CheckIn
from app.models.coin_mutation import CoinSource
from app.models.notification import NotificationType
from app.models.recognition import Recognition
from app.models.user import User
from app.services.aggregate_store import WellnessAggregate
from app.services.events import DomainEvent, EventKind

if TYPE_CHECKING:
    from app.services.engine import EngineContext

logger = logging.getLogger(__name__)

GOOD_MOOD = 4
MILESTONE_CATEGORY = "milestone"

LISTENED_EVENTS = frozenset({
    EventKind.CHECKIN_APPLIED,
    EventKind.JOURNAL_CREATED,
    EventKind.RECOGNITION_SENT,
    EventKind.REDEMPTION_COMPLETED,
    EventKind.SURVEY_COMPLETED,
})


# ---------------------------------------------------------------------------
# Criteria
# ---------------------------------------------------------------------------

Progress = Callable[[Session, date, User, int], int]


def _streak_days(db: Session, today: date, user: User, target: int) -> int:
    return WellnessAggregate.from_user(user).project(today).current_streak


def _total_checkins(db: Session, today: date, user: User, target: int) -> int:
    return db.query(CheckIn.id).filter(CheckIn.user_id == user.id).count()


def _consecutive_good_mood(db: Session, today: date, user: User, target: int) -> int:
    """Length of the run of mood >= 4 at the end of the check-in history, capped at target."""
    moods = [
        r.mood for r in db.query(CheckIn.mood)
        .filter(CheckIn.user_id == user.id)
        .order_by(CheckIn.day.desc())
        .limit(target)
    ]
    run = 0
    for mood in moods:
        if mood < GOOD_MOOD:
            break
        run += 1
    return run


def _survey_completion(db: Session, today: date, user: User, target: int) -> int:
    return user.surveys_completed


def _peer_recognition(db: Session, today: date, user: User, target: int) -> int:
    return db.query(Recognition.id).filter(Recognition.to_user_id == user.id).count()


def _recognitions_sent(db: Session, today: date, user: User, target: int) -> int:
    return db.query(Recognition.id).filter(Recognition.from_user_id == user.id).count()


CRITERIA: dict[CriteriaType, Progress] = {
    CriteriaType.streak_days:           _streak_days,
    CriteriaType.total_checkins:        _total_checkins,
    CriteriaType.consecutive_good_mood: _consecutive_good_mood,
    CriteriaType.survey_completion:     _survey_completion,
    CriteriaType.peer_recognition:      _peer_recognition,
}

# criteria_type == custom: predicate looked up by achievement name
CUSTOM_CRITERIA: dict[str, Progress] = {
    "Wellness Ambassador": _recognitions_sent,
}


def _progress_fn(achievement: Achievement) -> Optional[Progress]:
    criteria = CriteriaType(achievement.criteria_type)
    if criteria == CriteriaType.custom:
        return CUSTOM_CRITERIA.get(achievement.name)
    return CRITERIA[criteria]


def progress_for(db: Session, today: date, user: User, achievement: Achievement) -> int:
    fn = _progress_fn(achievement)
    if fn is None:
        return 0
    return fn(db, today, user, achievement.criteria_value)


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

def _earned_ids(db: Session, user_id: str) -> set[int]:
    return {
        aid for (aid,) in
        db.query(UserAchievement.achievement_id).filter(UserAchievement.user_id == user_id)
    }


def _award(ctx: "EngineContext", user_id: str, achievement: Achievement) -> Optional[UserAchievement]:
    coins = achievement.happy_coins_reward
    earned = UserAchievement(
        user_id=user_id,
        achievement_id=achievement.id,
        happy_coins_earned=coins,
        earned_at=ctx.clock.now(),
    )
    try:
        with ctx.db.begin_nested():
            ctx.db.add(earned)
    except IntegrityError:
        logger.info("User %s already holds achievement %r; skipped", user_id, achievement.name)
        return None

    if coins > 0:
        ctx.store.update_atomically(
            user_id,
            lambda agg: replace(agg, coin_balance=agg.coin_balance + coins),
            source=CoinSource.achievement,
            reference=f"achievement:{achievement.id}",
        )

    payload = {
        "achievement_id": achievement.id,
        "name": achievement.name,
        "description": achievement.description,
        "coins": coins,
    }
    ctx.outbox.emit(user_id, NotificationType.ACHIEVEMENT_EARNED, payload)
    if achievement.category == MILESTONE_CATEGORY:
        ctx.outbox.emit(user_id, NotificationType.MILESTONE_ACHIEVED, payload)
    logger.info("User %s earned achievement %r (+%d coins)", user_id, achievement.name, coins)
    return earned


def evaluate(ctx: "EngineContext", user_id: str) -> list[UserAchievement]:
    """Award every newly satisfied achievement. Returns the rows inserted."""
    db = ctx.db
    today = ctx.clock.today()
    earned = _earned_ids(db, user_id)
    catalog = (
        db.query(Achievement)
        .filter(Achievement.is_active.is_(True))
        .order_by(Achievement.sort_order.asc(), Achievement.id.asc())
        .all()
    )

    awarded: list[UserAchievement] = []
    for achievement in catalog:
        if achievement.id in earned:
            continue
        # Re-read each time: earlier awards in this loop change the balance/version.
        user = db.get(User, user_id)
        if progress_for(db, today, user, achievement) < achievement.criteria_value:
            continue
        earned_row = _award(ctx, user_id, achievement)
        if earned_row is not None:
            awarded.append(earned_row)
    return awarded


def on_domain_event(ctx: "EngineContext", event: DomainEvent) -> None:
    if event.kind in LISTENED_EVENTS:
        evaluate(ctx, event.user_id)


# ---------------------------------------------------------------------------
# Catalog & reads
# ---------------------------------------------------------------------------

@dataclass
class AchievementProgress:
    achievement: Achievement
    earned: bool
    earned_at: Optional[datetime]
    current: int
    target: int

    @property
    def percentage(self) -> int:
        if self.earned:
            return 100
        if self.target <= 0:
            return 0
        return min(100, round(self.current * 100 / self.target))


def achievement_progress(db: Session, clock: Clock, user_id: str) -> list[AchievementProgress]:
    user = db.get(User, user_id)
    today = clock.today()
    earned = {
        ua.achievement_id: ua for ua in
        db.query(UserAchievement).filter(UserAchievement.user_id == user_id)
    }
    catalog = (
        db.query(Achievement)
        .filter(Achievement.is_active.is_(True))
        .order_by(Achievement.sort_order.asc(), Achievement.id.asc())
        .all()
    )
    result = []
    for achievement in catalog:
        ua = earned.get(achievement.id)
        result.append(AchievementProgress(
            achievement=achievement,
            earned=ua is not None,
            earned_at=ua.earned_at if ua else None,
            current=progress_for(db, today, user, achievement),
            target=achievement.criteria_value,
        ))
    return result


def create_achievement(
    db: Session,
    name: str,
    description: str,
    category: str,
    criteria_type: str,
    criteria_value: int,
    happy_coins_reward: int = 0,
    rarity: str = "common",
    icon: Optional[str] = None,
    sort_order: int = 0,
) -> Achievement:
    criteria = CriteriaType(criteria_type)
    if criteria == CriteriaType.custom and name not in CUSTOM_CRITERIA:
        raise ValidationFailedError(
            f"No custom criteria registered for {name!r}.",
            {"registered": sorted(CUSTOM_CRITERIA)},
        )
    if criteria_value < 1 or happy_coins_reward < 0:
        raise ValidationFailedError("criteria_value must be >= 1 and happy_coins_reward >= 0.")
    achievement = Achievement(
        name=name,
        description=description,
        category=category,
        icon=icon,
        criteria_type=criteria,
        criteria_value=criteria_value,
        rarity=rarity,
        happy_coins_reward=happy_coins_reward,
        sort_order=sort_order,
        is_active=True,
    )
    db.add(achievement)
    db.flush()
    return achievement


# (name, description, category, icon, criteria_type, value, rarity, coins)
DEFAULT_ACHIEVEMENTS: list[tuple] = [
    ("First Steps",         "Completed your first wellness check-in",                  "checkin",    "🏆", "total_checkins",        1,   "common",    50),
    ("Wellness Warrior",    "Completed 10 wellness check-ins",                         "checkin",    "💪", "total_checkins",        10,  "common",    100),
    ("Dedicated Member",    "Completed 30 wellness check-ins",                         "checkin",    "🌟", "total_checkins",        30,  "rare",      200),
    ("Wellness Champion",   "Completed 100 wellness check-ins",                        "checkin",    "👑", "total_checkins",        100, "legendary", 500),
    ("Getting Started",     "Maintained check-ins for 3 consecutive days",             "streak",     "🔥", "streak_days",           3,   "common",    75),
    ("Week Warrior",        "Maintained check-ins for 7 consecutive days",             "streak",     "🔥", "streak_days",           7,   "common",    150),
    ("Consistency King",    "Maintained check-ins for 14 consecutive days",            "streak",     "⚡", "streak_days",           14,  "rare",      250),
    ("Monthly Master",      "Maintained check-ins for 30 consecutive days",            "streak",     "⭐", "streak_days",           30,  "epic",      400),
    ("Unstoppable Force",   "Maintained check-ins for 60 consecutive days",            "streak",     "💎", "streak_days",           60,  "legendary", 750),
    ("Positivity Pioneer",  "Maintained good mood (4+) for 5 consecutive check-ins",   "mood",       "😊", "consecutive_good_mood", 5,   "common",    100),
    ("Happiness Hero",      "Maintained good mood (4+) for 3 consecutive check-ins",   "mood",       "😄", "consecutive_good_mood", 3,   "rare",      200),
    ("Survey Starter",      "Completed your first survey",                             "engagement", "📋", "survey_completion",     1,   "common",    50),
    ("Feedback Champion",   "Completed 5 surveys",                                     "engagement", "📊", "survey_completion",     5,   "rare",      150),
    ("Team Player",         "Received peer recognition",                               "special",    "🤝", "peer_recognition",      1,   "common",    75),
    ("Wellness Ambassador", "Sent peer recognition to others",                         "special",    "🌟", "custom",                1,   "common",    50),
]


def seed_default_achievements(db: Session) -> int:
    """Insert the default catalog entries that are missing. Returns the count added."""
    existing = {name for (name,) in db.query(Achievement.name)}
    added = 0
    for order, (name, desc, category, icon, ctype, value, rarity, coins) in enumerate(
        DEFAULT_ACHIEVEMENTS, start=1
    ):
        if name in existing:
            continue
        db.add(Achievement(
            name=name,
            description=desc,
            category=category,
            icon=icon,
            criteria_type=CriteriaType(ctype),
            criteria_value=value,
            rarity=rarity,
            happy_coins_reward=coins,
            sort_order=order,
            is_active=True,
        ))
        added += 1
    db.flush()
    return added
