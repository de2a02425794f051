"""
Analytics & job schemas.

GET  /analytics/overview          → OverviewResponse
GET  /analytics/coins/{user_id}   → CoinAuditResponse
GET  /analytics/leaderboard       → LeaderboardResponse
POST /jobs/*                      → ScanReportResponse | DispatchReportResponse
"""
from typing import Optional

from pydantic import BaseModel, Field


class OverviewResponse(BaseModel):
    days: int = Field(description="Window length, ending today (UTC).")
    department: Optional[str] = None
    active_users: int
    total_checkins: int
    participating_users: int
    participation_rate: float = Field(description="participating_users / active_users")
    average_mood: Optional[float] = None
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


class CoinMutationResponse(BaseModel):
    id: int
    delta: int
    balance_after: int
    source: str
    reference: Optional[str] = None
    created_at: str


class CoinAuditResponse(BaseModel):
    user_id: str
    stored_balance: int
    ledger_balance: int = Field(description="Sum of all coin mutation deltas.")
    consistent: bool
    mutations: list[CoinMutationResponse]


class ScanReportResponse(BaseModel):
    job: str
    scanned: int
    notified: int
    reset: int
    skipped: int
    failed: int


class DispatchReportResponse(BaseModel):
    attempted: int
    sent: int
    failed: int
    retrying: int


class ScheduleResponse(BaseModel):
    streak_warnings: str = Field(description="Cron expression for POST /jobs/streak-warnings.")
    lost_streaks: str = Field(description="Cron expression for POST /jobs/lost-streaks.")


class LeaderboardEntryResponse(BaseModel):
    rank: int
    user_id: str
    name: str
    department: Optional[str] = None
    happy_coins: int


class LeaderboardStatsResponse(BaseModel):
    total_employees: int
    total_happy_coins: int
    average_happy_coins: float
    max_happy_coins: int


class LeaderboardResponse(BaseModel):
    department: Optional[str] = None
    total_users: int
    entries: list[LeaderboardEntryResponse]
    current_user: Optional[LeaderboardEntryResponse] = Field(
        default=None, description="The caller's own rank; null unless the caller is a ranked employee."
    )
    stats: Optional[LeaderboardStatsResponse] = Field(
        default=None, description="Department totals; only set for a department board."
    )
