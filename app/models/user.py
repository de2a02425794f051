"""
User — identity, notification preferences and the embedded wellness aggregate.

The wellness columns (coin_balance … surveys_completed) are owned by
app/services/aggregate_store.py. Nothing else writes them: every mutation
goes through `AggregateStore.update_atomically`, which bumps `version`
(optimistic concurrency).
"""
import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean, CheckConstraint, Date, DateTime, Enum, Index, Integer, Numeric, String, func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class UserRole(str, enum.Enum):
    employee = "employee"
    hr = "hr"
    admin = "admin"


class RiskLevel(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"


def _new_user_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("coin_balance >= 0", name="ck_users_coin_balance_non_negative"),
        CheckConstraint("current_streak >= 0", name="ck_users_current_streak_non_negative"),
        CheckConstraint("longest_streak >= current_streak", name="ck_users_longest_streak"),
        Index("ix_users_department_risk", "department", "risk_level"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_user_id)
    employee_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    department: Mapped[str | None] = mapped_column(String(64), nullable=True)
    role: Mapped[str] = mapped_column(
        Enum(UserRole, name="user_role_enum"), nullable=False, default=UserRole.employee
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # --- wellness aggregate ---
    coin_balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_checkin_day: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    average_mood: Mapped[Decimal | None] = mapped_column(Numeric(3, 1), nullable=True)
    risk_level: Mapped[str] = mapped_column(
        Enum(RiskLevel, name="risk_level_enum"), nullable=False, default=RiskLevel.low
    )
    risk_score: Mapped[Decimal] = mapped_column(Numeric(4, 3), nullable=False, default=Decimal("0"))
    journal_total_entries: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    journal_last_entry_day: Mapped[date | None] = mapped_column(Date, nullable=True)
    surveys_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # --- notification preferences ---
    check_in_reminder: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    survey_reminder: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    reward_updates: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    anonymized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
