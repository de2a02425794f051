"""
Check-in request / response schemas.

POST  /checkins        → CheckInCreate   → CheckInSubmitResponse
GET   /checkins        →                   CheckInHistoryResponse
GET   /checkins/today  →                   CheckInResponse | null
GET   /checkins/trend  →                   MoodTrendResponse
PATCH /checkins/{id}   → FeedbackUpdate  → CheckInResponse
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.models.checkin import CheckInSource


class CheckInCreate(BaseModel):
    mood: int = Field(
        ge=1,
        le=5,
        strict=True,
        description="1 = Very Poor … 5 = Excellent.",
        examples=[4],
    )
    feedback: Optional[str] = Field(
        default=None,
        max_length=500,
        description="Optional free text. Non-empty feedback earns a bonus.",
        examples=["Good day, productive standup."],
    )
    source: CheckInSource = Field(
        default=CheckInSource.web,
        description="Channel the check-in came from.",
        examples=["web"],
    )

    @field_validator("feedback", mode="before")
    @classmethod
    def strip_feedback(cls, v):
        return v.strip() if isinstance(v, str) else v


class FeedbackUpdate(BaseModel):
    feedback: Optional[str] = Field(default=None, max_length=500)


class CheckInResponse(BaseModel):
    id: int
    day: str = Field(description="UTC day bucket (ISO date).")
    mood: int
    mood_label: str
    feedback: Optional[str] = None
    source: str
    happy_coins_earned: int
    streak_at_checkin: int
    created_at: str


class WellnessSnapshot(BaseModel):
    """The user's wellness aggregate, projected to today."""
    coin_balance: int
    current_streak: int
    longest_streak: int
    last_checkin_day: Optional[str] = None
    average_mood: Optional[float] = None
    risk_level: str
    journal_total_entries: int = 0
    surveys_completed: int = 0


class CoinBreakdown(BaseModel):
    base: int
    feedback_bonus: int
    mood_bonus: int
    streak_bonus: int
    total: int


class CheckInSubmitResponse(BaseModel):
    check_in: CheckInResponse
    wellness: WellnessSnapshot
    coins: CoinBreakdown


class MoodStatsResponse(BaseModel):
    total_checkins: int
    average_mood: Optional[float] = None
    total_happy_coins: int
    mood_distribution: dict[int, int]


class PageInfo(BaseModel):
    total: int
    page: int
    pages: int
    limit: int
    next_cursor: Optional[str] = Field(
        default=None, description="Pass as `cursor` to fetch the next page."
    )


class CheckInHistoryResponse(BaseModel):
    items: list[CheckInResponse]
    pagination: PageInfo
    stats: MoodStatsResponse


class TrendPointResponse(BaseModel):
    day: str
    mood: int
    mood_label: str


class MoodTrendResponse(BaseModel):
    days: int
    trend: list[TrendPointResponse]
    direction: str = Field(description='"improving" | "declining" | "stable"')
    change: float = Field(description="Recent (last 3) mean minus older mean.")
    average: float
