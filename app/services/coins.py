"""
Happy coin award tables.

Check-in awards come from Settings; recognition awards are fixed per type.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from app.core.config import Settings
from app.models.recognition import RecognitionType

RECOGNITION_COINS: dict[RecognitionType, int] = {
    RecognitionType.kudos:       20,
    RecognitionType.thank_you:   15,
    RecognitionType.great_job:   25,
    RecognitionType.team_player: 30,
    RecognitionType.innovation:  40,
    RecognitionType.leadership:  50,
}


@dataclass(frozen=True)
class CheckInCoins:
    base: int
    feedback_bonus: int
    mood_bonus: int
    streak_bonus: int

    @property
    def total(self) -> int:
        return self.base + self.feedback_bonus + self.mood_bonus + self.streak_bonus

    def to_dict(self) -> dict:
        return {
            "base": self.base,
            "feedback_bonus": self.feedback_bonus,
            "mood_bonus": self.mood_bonus,
            "streak_bonus": self.streak_bonus,
            "total": self.total,
        }


def checkin_coins(
    mood: int,
    feedback: Optional[str],
    streak_bonus: int,
    settings: Settings,
) -> CheckInCoins:
    return CheckInCoins(
        base=settings.DAILY_CHECKIN_COINS,
        feedback_bonus=settings.FEEDBACK_BONUS_COINS if feedback and feedback.strip() else 0,
        mood_bonus=settings.POSITIVE_MOOD_BONUS_COINS if mood >= 4 else 0,
        streak_bonus=streak_bonus,
    )
