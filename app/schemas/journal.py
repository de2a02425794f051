from typing import Optional

from pydantic import BaseModel, Field

from app.models.journal import JournalCategory, JournalPrivacy


class JournalCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1, max_length=10000)
    mood: int = Field(ge=1, le=5, strict=True)
    category: JournalCategory = JournalCategory.personal
    tags: list[str] = Field(default_factory=list, max_length=10)
    privacy: JournalPrivacy = JournalPrivacy.private


class JournalUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = Field(default=None, min_length=1, max_length=10000)
    mood: Optional[int] = Field(default=None, ge=1, le=5, strict=True)
    category: Optional[JournalCategory] = None
    tags: Optional[list[str]] = Field(default=None, max_length=10)
    privacy: Optional[JournalPrivacy] = None


class JournalResponse(BaseModel):
    id: int
    title: str
    content: str
    mood: int
    category: str
    tags: list[str]
    privacy: str
    word_count: int
    reading_time: int = Field(description="Minutes, at 200 words per minute.")
    created_at: str


class JournalListResponse(BaseModel):
    total: int
    items: list[JournalResponse]
