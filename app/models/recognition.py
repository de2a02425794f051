"""
Recognition — peer-to-peer kudos. Immutable; the recipient is credited
`happy_coins_awarded` in the same transaction as the insert.
"""
from datetime import datetime
import enum

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class RecognitionType(str, enum.Enum):
    kudos = "kudos"
    thank_you = "thank_you"
    great_job = "great_job"
    team_player = "team_player"
    innovation = "innovation"
    leadership = "leadership"


class Recognition(Base):
    __tablename__ = "recognitions"
    __table_args__ = (
        CheckConstraint("from_user_id <> to_user_id", name="ck_recognitions_not_self"),
        Index("ix_recognitions_to_created", "to_user_id", "created_at"),
        Index("ix_recognitions_from_created", "from_user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    from_user_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    to_user_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(
        Enum(RecognitionType, name="recognition_type_enum"), nullable=False
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    happy_coins_awarded: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
