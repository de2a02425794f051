"""
HR / admin analytics — pure reads off the ledger and the aggregate,
plus the happy-coin leaderboard every employee can see.

Streak figures use the projected streak: a stored streak whose
last_checkin_day is older than yesterday counts as 0.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.clock import Clock, start_of_day
from app.models.checkin import CheckIn
from app.models.coin_mutation import CoinMutation
from app.models.user import RiskLevel, User, UserRole
from app.schemas.common import ev
from app.services.aggregate_store import AggregateStore


@dataclass
class Overview:
    days: int
    department: Optional[str]
    active_users: int
    total_checkins: int
    participating_users: int
    participation_rate: float
    average_mood: Optional[float]
    mood_distribution: dict[int, int]
    risk_distribution: dict[str, int]
    active_streaks: int
    streaks_7_plus: int
    average_active_streak: float
    max_current_streak: int
    max_longest_streak: int
    coins_outstanding: int
    coins_issued: int
    coins_spent: int


def overview(db: Session, clock: Clock, days: int = 30, department: Optional[str] = None) -> Overview:
    today = clock.today()
    start = today - timedelta(days=days - 1)

    users_q = db.query(User).filter(User.is_active.is_(True))
    if department:
        users_q = users_q.filter(User.department == department)
    users = users_q.all()
    user_ids = [u.id for u in users]

    checkins_q = db.query(CheckIn).filter(CheckIn.day >= start, CheckIn.day <= today)
    if department:
        checkins_q = checkins_q.filter(CheckIn.user_id.in_(user_ids))

    distribution = {m: 0 for m in range(1, 6)}
    total = mood_sum = 0
    for mood, count in (
        checkins_q.with_entities(CheckIn.mood, func.count(CheckIn.id)).group_by(CheckIn.mood)
    ):
        distribution[mood] = count
        total += count
        mood_sum += mood * count
    participating = checkins_q.with_entities(func.count(func.distinct(CheckIn.user_id))).scalar() or 0

    risk = {level.value: 0 for level in RiskLevel}
    alive_since = today - timedelta(days=1)
    active_streaks: list[int] = []
    for u in users:
        risk[ev(u.risk_level)] += 1
        if u.current_streak > 0 and u.last_checkin_day is not None and u.last_checkin_day >= alive_since:
            active_streaks.append(u.current_streak)

    mutations_q = db.query(CoinMutation).filter(CoinMutation.created_at >= start_of_day(start))
    if department:
        mutations_q = mutations_q.filter(CoinMutation.user_id.in_(user_ids))
    issued = mutations_q.filter(CoinMutation.delta > 0).with_entities(
        func.coalesce(func.sum(CoinMutation.delta), 0)
    ).scalar()
    spent = mutations_q.filter(CoinMutation.delta < 0).with_entities(
        func.coalesce(func.sum(CoinMutation.delta), 0)
    ).scalar()

    return Overview(
        days=days,
        department=department,
        active_users=len(users),
        total_checkins=total,
        participating_users=participating,
        participation_rate=round(participating / len(users), 3) if users else 0.0,
        average_mood=round(mood_sum / total, 2) if total else None,
        mood_distribution=distribution,
        risk_distribution=risk,
        active_streaks=len(active_streaks),
        streaks_7_plus=sum(1 for s in active_streaks if s >= 7),
        average_active_streak=round(sum(active_streaks) / len(active_streaks), 2) if active_streaks else 0.0,
        max_current_streak=max(active_streaks, default=0),
        max_longest_streak=max((u.longest_streak for u in users), default=0),
        coins_outstanding=sum(u.coin_balance for u in users),
        coins_issued=int(issued or 0),
        coins_spent=-int(spent or 0),
    )


def coin_audit(db: Session, store: AggregateStore, user_id: str, limit: int = 50) -> dict:
    """Stored balance vs the balance reconstructed from the mutation log."""
    aggregate = store.read(user_id)
    reconstructed = store.ledger_balance(user_id)
    recent = (
        db.query(CoinMutation)
        .filter(CoinMutation.user_id == user_id)
        .order_by(CoinMutation.created_at.desc(), CoinMutation.id.desc())
        .limit(limit)
        .all()
    )
    return {
        "user_id": user_id,
        "stored_balance": aggregate.coin_balance,
        "ledger_balance": reconstructed,
        "consistent": aggregate.coin_balance == reconstructed,
        "mutations": [
            {
                "id": m.id,
                "delta": m.delta,
                "balance_after": m.balance_after,
                "source": ev(m.source),
                "reference": m.reference,
                "created_at": m.created_at.isoformat(),
            }
            for m in recent
        ],
    }


# ---------------------------------------------------------------------------
# Happy-coin leaderboard
# ---------------------------------------------------------------------------

@dataclass
class LeaderboardEntry:
    rank: int
    user_id: str
    name: str
    department: Optional[str]
    happy_coins: int


@dataclass
class Leaderboard:
    department: Optional[str]
    total_users: int
    entries: list[LeaderboardEntry]
    current_user: Optional[LeaderboardEntry] = None
    stats: Optional[dict] = None


def _ranked_users(db: Session, department: Optional[str]):
    q = db.query(User).filter(User.is_active.is_(True), User.role == UserRole.employee)
    if department:
        q = q.filter(User.department == department)
    return q


def leaderboard(
    db: Session,
    department: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    user_id: Optional[str] = None,
) -> Leaderboard:
    """
    Active employees ranked by happy coins, globally or within one department.

    Entries are ranked by position (ties broken by name). The caller's own
    rank is 1 + the number of ranked users holding strictly more coins, and
    is only reported when the caller is a ranked employee.
    """
    base = _ranked_users(db, department)
    total = base.count()
    rows = (
        base.order_by(User.coin_balance.desc(), User.name.asc(), User.id.asc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    entries = [
        LeaderboardEntry(offset + i + 1, u.id, u.name, u.department, u.coin_balance)
        for i, u in enumerate(rows)
    ]

    current = None
    if user_id:
        me = base.filter(User.id == user_id).one_or_none()
        if me is not None:
            above = base.filter(User.coin_balance > me.coin_balance).count()
            current = LeaderboardEntry(above + 1, me.id, me.name, me.department, me.coin_balance)

    stats = None
    if department:
        coins_total, coins_avg, coins_max = base.with_entities(
            func.coalesce(func.sum(User.coin_balance), 0),
            func.avg(User.coin_balance),
            func.coalesce(func.max(User.coin_balance), 0),
        ).one()
        stats = {
            "total_employees": total,
            "total_happy_coins": int(coins_total),
            "average_happy_coins": round(float(coins_avg), 2) if coins_avg is not None else 0.0,
            "max_happy_coins": int(coins_max),
        }

    return Leaderboard(department, total, entries, current, stats)
