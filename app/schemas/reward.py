from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.models.reward import UNLIMITED_QUANTITY


class RewardCreate(BaseModel):
    name: str = Field(min_length=1, max_length=128, examples=["Extra day off"])
    description: Optional[str] = None
    category: str = Field(default="wellness", max_length=32)
    cost: int = Field(ge=0, description="Price in happy coins.", examples=[200])
    quantity_remaining: int = Field(
        default=UNLIMITED_QUANTITY,
        ge=UNLIMITED_QUANTITY,
        description="-1 = unlimited.",
    )
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    is_active: bool = True


class RewardResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    category: str
    cost: int
    quantity_remaining: int
    starts_at: Optional[str] = None
    ends_at: Optional[str] = None
    is_active: bool
    total_redemptions: int


class RedemptionResponse(BaseModel):
    id: int
    user_id: str
    reward_id: int
    coins_spent: int
    redemption_code: str
    state: str = Field(description='"pending" | "approved" | "fulfilled" | "cancelled"')
    requested_at: str
    approved_at: Optional[str] = None
    fulfilled_at: Optional[str] = None
    cancelled_at: Optional[str] = None


class RedemptionListResponse(BaseModel):
    total: int
    items: list[RedemptionResponse]
