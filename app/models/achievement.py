from datetime import datetime
import enum

from sqlalchemy import (
    Boolean, DateTime, Enum, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class CriteriaType(str, enum.Enum):
    streak_days = "streak_days"
    total_checkins = "total_checkins"
    consecutive_good_mood = "consecutive_good_mood"
    survey_completion = "survey_completion"
    peer_recognition = "peer_recognition"
    custom = "custom"


class Achievement(Base):
    """Achievement catalog. Criteria are evaluated by app/services/achievements.py."""

    __tablename__ = "achievements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    icon: Mapped[str | None] = mapped_column(String(16), nullable=True)
    criteria_type: Mapped[str] = mapped_column(
        Enum(CriteriaType, name="criteria_type_enum"), nullable=False
    )
    criteria_value: Mapped[int] = mapped_column(Integer, nullable=False)
    rarity: Mapped[str] = mapped_column(String(16), nullable=False, default="common")
    happy_coins_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class UserAchievement(Base):
    """
    One row per (user_id, achievement_id). The unique constraint makes the
    evaluator idempotent under duplicate event delivery.
    """

    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="uq_user_achievement"),
        Index("ix_user_achievements_user_earned", "user_id", "earned_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    achievement_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("achievements.id"), nullable=False
    )
    happy_coins_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
