"""
Journal entries.

create  → row + journaling counters (update_atomically) + JournalCreated
update  → only within 24h of creation; word_count / reading_time recomputed
delete  → soft (is_deleted), journal_total_entries decremented
"""
from __future__ import annotations

import math
from dataclasses import replace
from datetime import timedelta
from typing import Iterable, Optional, TYPE_CHECKING

from sqlalchemy.orm import Session

from app.core.clock import as_utc
from app.core.errors import NotFoundError, ValidationFailedError
from app.models.journal import JournalCategory, JournalEntry, JournalPrivacy
from app.services.events import DomainEvent, EventKind

if TYPE_CHECKING:
    from app.services.engine import EngineContext

EDIT_WINDOW = timedelta(hours=24)
WORDS_PER_MINUTE = 200
MAX_TITLE_LENGTH = 200
MAX_CONTENT_LENGTH = 10000
MAX_TAGS = 10


def word_count(content: str) -> int:
    return len(content.split())


def reading_time(words: int) -> int:
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


def normalize_tags(tags: Optional[Iterable[str]]) -> Optional[str]:
    if not tags:
        return None
    seen: list[str] = []
    for tag in tags:
        tag = tag.strip().lower()
        if tag and tag not in seen:
            seen.append(tag)
    if len(seen) > MAX_TAGS:
        raise ValidationFailedError(f"At most {MAX_TAGS} tags are allowed.", {"field": "tags"})
    return ",".join(seen) or None


def tags_of(entry: JournalEntry) -> list[str]:
    return entry.tags.split(",") if entry.tags else []


def _validate_text(title: str, content: str) -> tuple[str, str]:
    title = (title or "").strip()
    content = (content or "").strip()
    if not title or len(title) > MAX_TITLE_LENGTH:
        raise ValidationFailedError(
            f"Title must be 1-{MAX_TITLE_LENGTH} characters.", {"field": "title"}
        )
    if not content or len(content) > MAX_CONTENT_LENGTH:
        raise ValidationFailedError(
            f"Content must be 1-{MAX_CONTENT_LENGTH} characters.", {"field": "content"}
        )
    return title, content


def _validate_mood(mood: int) -> None:
    if isinstance(mood, bool) or not isinstance(mood, int) or not 1 <= mood <= 5:
        raise ValidationFailedError("Mood must be an integer between 1 and 5.", {"field": "mood"})


def get_entry(db: Session, user_id: str, entry_id: int) -> JournalEntry:
    entry = db.get(JournalEntry, entry_id)
    if entry is None or entry.user_id != user_id or entry.is_deleted:
        raise NotFoundError("JournalEntry", entry_id)
    return entry


def create_entry(
    ctx: "EngineContext",
    user_id: str,
    title: str,
    content: str,
    mood: int,
    category: JournalCategory | str = JournalCategory.personal,
    tags: Optional[Iterable[str]] = None,
    privacy: JournalPrivacy | str = JournalPrivacy.private,
) -> JournalEntry:
    title, content = _validate_text(title, content)
    _validate_mood(mood)
    today = ctx.clock.today()
    words = word_count(content)
    entry = JournalEntry(
        user_id=user_id,
        title=title,
        content=content,
        mood=mood,
        category=JournalCategory(category),
        tags=normalize_tags(tags),
        privacy=JournalPrivacy(privacy),
        word_count=words,
        reading_time=reading_time(words),
        is_deleted=False,
        created_at=ctx.clock.now(),
    )
    ctx.db.add(entry)
    ctx.db.flush()

    ctx.store.update_atomically(
        user_id,
        lambda agg: replace(
            agg,
            journal_total_entries=agg.journal_total_entries + 1,
            journal_last_entry_day=today,
        ),
    )
    ctx.publish(DomainEvent(EventKind.JOURNAL_CREATED, user_id, reference=f"journal:{entry.id}"))
    return entry


def update_entry(
    ctx: "EngineContext",
    user_id: str,
    entry_id: int,
    title: Optional[str] = None,
    content: Optional[str] = None,
    mood: Optional[int] = None,
    category: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
    privacy: Optional[str] = None,
) -> JournalEntry:
    entry = get_entry(ctx.db, user_id, entry_id)
    if ctx.clock.now() - as_utc(entry.created_at) > EDIT_WINDOW:
        raise ValidationFailedError(
            "Journal entries can only be edited within 24 hours of creation.",
            {"created_at": as_utc(entry.created_at).isoformat()},
        )

    new_title, new_content = _validate_text(
        title if title is not None else entry.title,
        content if content is not None else entry.content,
    )
    entry.title = new_title
    if new_content != entry.content:
        entry.content = new_content
        entry.word_count = word_count(new_content)
        entry.reading_time = reading_time(entry.word_count)
    if mood is not None:
        _validate_mood(mood)
        entry.mood = mood
    if category is not None:
        entry.category = JournalCategory(category)
    if tags is not None:
        entry.tags = normalize_tags(tags)
    if privacy is not None:
        entry.privacy = JournalPrivacy(privacy)
    ctx.db.flush()
    return entry


def soft_delete_entry(ctx: "EngineContext", user_id: str, entry_id: int) -> None:
    entry = get_entry(ctx.db, user_id, entry_id)
    entry.is_deleted = True
    ctx.db.flush()
    ctx.store.update_atomically(
        user_id,
        lambda agg: replace(agg, journal_total_entries=max(0, agg.journal_total_entries - 1)),
    )


def list_entries(
    db: Session,
    user_id: str,
    category: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[int, list[JournalEntry]]:
    q = db.query(JournalEntry).filter(
        JournalEntry.user_id == user_id,
        JournalEntry.is_deleted.is_(False),
    )
    if category:
        q = q.filter(JournalEntry.category == JournalCategory(category))
    total = q.count()
    items = (
        q.order_by(JournalEntry.created_at.desc(), JournalEntry.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return total, items
