from datetime import datetime
import enum

from sqlalchemy import (
    Boolean, CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, String, Text, func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base

UNLIMITED_QUANTITY = -1


class RedemptionState(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    fulfilled = "fulfilled"
    cancelled = "cancelled"


class Reward(Base):
    """Catalog entry. `quantity_remaining == -1` means unlimited."""

    __tablename__ = "rewards"
    __table_args__ = (
        CheckConstraint("cost >= 0", name="ck_rewards_cost_non_negative"),
        CheckConstraint("quantity_remaining >= -1", name="ck_rewards_quantity"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(32), nullable=False, default="wellness")
    cost: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_remaining: Mapped[int] = mapped_column(
        Integer, nullable=False, default=UNLIMITED_QUANTITY
    )
    starts_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    total_redemptions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class Redemption(Base):
    """
    Redemption state machine:

        pending ──approve──▶ approved ──fulfill──▶ fulfilled
           │                     │
           └──cancel──▶ cancelled ◀──cancel──┘

    Never deleted. `cancelled` implies a refund coin mutation of `coins_spent`.
    """

    __tablename__ = "redemptions"
    __table_args__ = (
        Index("ix_redemptions_user_requested", "user_id", "requested_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    reward_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("rewards.id"), nullable=False, index=True
    )
    coins_spent: Mapped[int] = mapped_column(Integer, nullable=False)
    redemption_code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    state: Mapped[str] = mapped_column(
        Enum(RedemptionState, name="redemption_state_enum"),
        nullable=False,
        default=RedemptionState.pending,
    )
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    fulfilled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
