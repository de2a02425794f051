"""
CoinMutation — audit log of every change to `users.coin_balance`.

Append-only, written only by AggregateStore.update_atomically in the same
transaction as the balance change. Summing `delta` per user reconstructs
the stored balance.
"""
from datetime import datetime
import enum

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class CoinSource(str, enum.Enum):
    checkin = "checkin"
    recognition = "recognition"
    achievement = "achievement"
    redemption = "redemption"
    refund = "refund"


class CoinMutation(Base):
    __tablename__ = "coin_mutations"
    __table_args__ = (
        Index("ix_coin_mutations_user_created", "user_id", "created_at"),
        Index("ix_coin_mutations_reference", "reference"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(
        Enum(CoinSource, name="coin_source_enum"), nullable=False
    )
    # e.g. "checkin:12", "redemption:4"
    reference: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
