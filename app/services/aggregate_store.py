"""
User Aggregate Store — the only writer of the wellness columns on `users`.

Concurrency: optimistic CAS on `users.version`
-----------------------------------------------
  1. read the row and project it to today (a lapsed streak reads as 0)
  2. f(aggregate) → proposed aggregate
  3. validate the proposal (balance, streak bounds, identity, source tag)
  4. UPDATE users SET ..., version = v + 1 WHERE id = :id AND version = v
  5. rowcount == 0 → someone else won; re-read and re-run f
     (at most AGGREGATE_MAX_RETRIES attempts, then AggregateConflictError)

Every balance change appends one CoinMutation row in the same transaction,
so `ledger_balance(user_id)` always reconstructs `coin_balance`.

The store never commits. The caller's unit of work owns the transaction.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.config import Settings
from app.core.errors import AggregateConflictError, InvariantViolationError, NotFoundError
from app.models.coin_mutation import CoinMutation, CoinSource
from app.models.user import User
from app.schemas.common import ev

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Value type
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WellnessAggregate:
    user_id: str
    version: int
    coin_balance: int
    current_streak: int
    longest_streak: int
    last_checkin_day: Optional[date]
    average_mood: Optional[Decimal]
    risk_level: str
    risk_score: Decimal
    journal_total_entries: int
    journal_last_entry_day: Optional[date]
    surveys_completed: int

    @classmethod
    def from_user(cls, user: User) -> "WellnessAggregate":
        return cls(
            user_id=user.id,
            version=user.version,
            coin_balance=user.coin_balance,
            current_streak=user.current_streak,
            longest_streak=user.longest_streak,
            last_checkin_day=user.last_checkin_day,
            average_mood=user.average_mood,
            risk_level=ev(user.risk_level),
            risk_score=Decimal(user.risk_score or 0),
            journal_total_entries=user.journal_total_entries,
            journal_last_entry_day=user.journal_last_entry_day,
            surveys_completed=user.surveys_completed,
        )

    def project(self, today: date) -> "WellnessAggregate":
        """A streak whose last check-in is older than yesterday is broken."""
        if self.current_streak > 0 and not _streak_alive(self.last_checkin_day, today):
            return replace(self, current_streak=0)
        return self

    def column_values(self) -> dict:
        values = asdict(self)
        values.pop("user_id")
        values.pop("version")
        return values

    def to_dict(self) -> dict:
        return {
            "coin_balance": self.coin_balance,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_checkin_day": self.last_checkin_day.isoformat() if self.last_checkin_day else None,
            "average_mood": float(self.average_mood) if self.average_mood is not None else None,
            "risk_level": self.risk_level,
            "journal_total_entries": self.journal_total_entries,
            "surveys_completed": self.surveys_completed,
        }


def _streak_alive(last_day: Optional[date], today: date) -> bool:
    return last_day is not None and last_day in (today, today - timedelta(days=1))


def check_invariants(aggregate: WellnessAggregate, today: date) -> None:
    """Raise InvariantViolationError on a negative balance or an inconsistent streak."""
    data = {"user_id": aggregate.user_id}
    if aggregate.coin_balance < 0:
        raise InvariantViolationError(
            "coin_balance would become negative",
            {**data, "coin_balance": aggregate.coin_balance},
        )
    if aggregate.current_streak < 0:
        raise InvariantViolationError("current_streak is negative", data)
    if aggregate.longest_streak < aggregate.current_streak:
        raise InvariantViolationError(
            "longest_streak is below current_streak",
            {**data, "current": aggregate.current_streak, "longest": aggregate.longest_streak},
        )
    alive = _streak_alive(aggregate.last_checkin_day, today)
    if (aggregate.current_streak > 0) != alive:
        raise InvariantViolationError(
            "current_streak disagrees with last_checkin_day",
            {
                **data,
                "current_streak": aggregate.current_streak,
                "last_checkin_day": str(aggregate.last_checkin_day),
                "today": str(today),
            },
        )
    if aggregate.average_mood is not None and not (1 <= aggregate.average_mood <= 5):
        raise InvariantViolationError(
            "average_mood out of range", {**data, "average_mood": str(aggregate.average_mood)}
        )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class AggregateStore:
    def __init__(self, db: Session, clock: Clock, settings: Settings):
        self.db = db
        self.clock = clock
        self.max_retries = settings.AGGREGATE_MAX_RETRIES

    def _load(self, user_id: str) -> User:
        user = self.db.get(User, user_id, populate_existing=True)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def read(self, user_id: str) -> WellnessAggregate:
        return WellnessAggregate.from_user(self._load(user_id)).project(self.clock.today())

    def update_atomically(
        self,
        user_id: str,
        f: Callable[[WellnessAggregate], WellnessAggregate],
        *,
        source: Optional[CoinSource] = None,
        reference: Optional[str] = None,
    ) -> WellnessAggregate:
        today = self.clock.today()
        for attempt in range(1, self.max_retries + 1):
            stored = WellnessAggregate.from_user(self._load(user_id))
            current = stored.project(today)
            proposed = f(current)
            self._validate(current, proposed, today, source)
            if proposed == stored:
                return proposed

            result = self.db.execute(
                update(User)
                .where(User.id == user_id, User.version == current.version)
                .values(**proposed.column_values(), version=current.version + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.info(
                    "Aggregate CAS miss for user %s (attempt %d/%d)",
                    user_id, attempt, self.max_retries,
                )
                continue

            delta = proposed.coin_balance - current.coin_balance
            if delta:
                self.db.add(CoinMutation(
                    user_id=user_id,
                    delta=delta,
                    balance_after=proposed.coin_balance,
                    source=source,
                    reference=reference,
                    created_at=self.clock.now(),
                ))
            user = self.db.get(User, user_id)
            if user is not None:
                self.db.expire(user)
            return replace(proposed, version=current.version + 1)

        logger.warning(
            "Aggregate update for user %s gave up after %d attempts", user_id, self.max_retries
        )
        raise AggregateConflictError(user_id, self.max_retries)

    def _validate(
        self,
        current: WellnessAggregate,
        proposed: WellnessAggregate,
        today: date,
        source: Optional[CoinSource],
    ) -> None:
        if proposed.user_id != current.user_id or proposed.version != current.version:
            raise InvariantViolationError(
                "aggregate identity or version changed inside update",
                {"user_id": current.user_id},
            )
        if proposed.coin_balance != current.coin_balance and source is None:
            raise InvariantViolationError(
                "coin balance changed without a mutation source",
                {"user_id": current.user_id},
            )
        check_invariants(proposed, today)

    def ledger_balance(self, user_id: str) -> int:
        """Reconstruct the balance from the coin mutation log."""
        total = self.db.execute(
            select(func.coalesce(func.sum(CoinMutation.delta), 0))
            .where(CoinMutation.user_id == user_id)
        ).scalar_one()
        return int(total)
