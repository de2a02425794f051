from datetime import datetime
import enum

from sqlalchemy import (
    Boolean, CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, String, Text, func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class JournalCategory(str, enum.Enum):
    personal = "personal"
    work = "work"
    wellness = "wellness"
    goals = "goals"
    gratitude = "gratitude"
    challenges = "challenges"
    reflection = "reflection"


class JournalPrivacy(str, enum.Enum):
    private = "private"
    anonymous_share = "anonymous_share"
    team_share = "team_share"


class JournalEntry(Base):
    """A journal entry. Soft-deleted via `is_deleted`; editable for 24h."""

    __tablename__ = "journal_entries"
    __table_args__ = (
        CheckConstraint("mood BETWEEN 1 AND 5", name="ck_journal_mood_range"),
        Index("ix_journal_user_created", "user_id", "created_at"),
        Index("ix_journal_user_category", "user_id", "category"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    mood: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(
        Enum(JournalCategory, name="journal_category_enum"),
        nullable=False,
        default=JournalCategory.personal,
    )
    # Comma-separated, lowercased, de-duplicated.
    tags: Mapped[str | None] = mapped_column(String(512), nullable=True)
    privacy: Mapped[str] = mapped_column(
        Enum(JournalPrivacy, name="journal_privacy_enum"),
        nullable=False,
        default=JournalPrivacy.private,
    )
    word_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reading_time: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
