from typing import Optional

from pydantic import BaseModel, Field

from app.models.achievement import CriteriaType


class AchievementCreate(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    description: str = Field(min_length=1)
    category: str = Field(max_length=32, examples=["streak", "milestone"])
    icon: Optional[str] = None
    criteria_type: CriteriaType
    criteria_value: int = Field(ge=1)
    rarity: str = "common"
    happy_coins_reward: int = Field(default=0, ge=0)
    sort_order: int = 0


class AchievementResponse(BaseModel):
    id: int
    name: str
    description: str
    category: str
    icon: Optional[str] = None
    criteria_type: str
    criteria_value: int
    rarity: str
    happy_coins_reward: int


class AchievementProgressResponse(BaseModel):
    achievement: AchievementResponse
    earned: bool
    earned_at: Optional[str] = None
    current: int
    target: int
    percentage: int
