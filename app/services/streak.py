"""
Streak Engine — pure function, no I/O.

  old.last_checkin_day     new_streak
  -----------------------  --------------------------
  None (first check-in)    1
  today                    impossible (ledger rejects the duplicate)
  yesterday                old.current_streak + 1
  anything else            1 (reset; also covers future days)

Bonus coins are keyed by the new streak value.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from app.core.errors import InvariantViolationError
from app.services.aggregate_store import WellnessAggregate

STREAK_BONUSES: dict[int, int] = {7: 100, 30: 500, 90: 1500}


@dataclass(frozen=True)
class StreakAdvance:
    new_streak: int
    new_longest: int
    bonus: int


def advance(old: WellnessAggregate, today: date) -> StreakAdvance:
    last = old.last_checkin_day
    if last is None:
        new_streak = 1
    elif last == today:
        raise InvariantViolationError(
            "streak advanced twice on the same day",
            {"user_id": old.user_id, "day": str(today)},
        )
    elif last == today - timedelta(days=1):
        new_streak = old.current_streak + 1
    else:
        new_streak = 1

    return StreakAdvance(
        new_streak=new_streak,
        new_longest=max(old.longest_streak, new_streak),
        bonus=STREAK_BONUSES.get(new_streak, 0),
    )
