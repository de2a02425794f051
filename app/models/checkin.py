"""
CheckIn — the day-bucketed ledger.

Append-only. One row per (user_id, day): the unique constraint is the
serialization point for concurrent same-day submissions. Only `feedback`
may change after insert, and only on the same UTC day.
"""
from datetime import datetime, date
import enum

from sqlalchemy import (
    CheckConstraint, Date, DateTime, Enum, ForeignKey, Index, Integer, String, Text,
    UniqueConstraint, func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class CheckInSource(str, enum.Enum):
    web = "web"
    mobile = "mobile"
    slack = "slack"
    whatsapp = "whatsapp"


MOOD_LABELS = {
    1: "Very Poor",
    2: "Poor",
    3: "Neutral",
    4: "Good",
    5: "Excellent",
}


class CheckIn(Base):
    __tablename__ = "checkins"
    __table_args__ = (
        UniqueConstraint("user_id", "day", name="uq_checkins_user_day"),
        CheckConstraint("mood BETWEEN 1 AND 5", name="ck_checkins_mood_range"),
        CheckConstraint("happy_coins_earned >= 0", name="ck_checkins_coins_non_negative"),
        Index("ix_checkins_user_created", "user_id", "created_at"),
        Index("ix_checkins_day_mood", "day", "mood"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    day: Mapped[date] = mapped_column(Date, nullable=False)
    mood: Mapped[int] = mapped_column(Integer, nullable=False)
    feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(
        Enum(CheckInSource, name="checkin_source_enum"),
        nullable=False,
        default=CheckInSource.web,
    )
    happy_coins_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    streak_at_checkin: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
