from typing import Any, Optional

from pydantic import BaseModel, Field

from app.models.notification import NotificationType


class NotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    message: str
    payload: Optional[dict[str, Any]] = None
    priority: str
    is_read: bool
    read_at: Optional[str] = None
    expires_at: Optional[str] = None
    created_at: str


class NotificationListResponse(BaseModel):
    total: int
    unread: int
    items: list[NotificationResponse]


class BroadcastRequest(BaseModel):
    type: NotificationType = Field(
        description="SURVEY_AVAILABLE, CHALLENGE_JOINED or SYSTEM_UPDATE.",
        examples=["SURVEY_AVAILABLE"],
    )
    payload: dict[str, Any] = Field(
        default_factory=dict,
        examples=[{"survey_title": "Weekly Wellness Check"}],
    )
    user_ids: Optional[list[str]] = Field(
        default=None, description="Omit to target every active user."
    )
