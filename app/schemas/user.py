from typing import Optional

from pydantic import BaseModel, Field

from app.models.user import UserRole
from app.schemas.checkin import WellnessSnapshot


class UserCreate(BaseModel):
    employee_id: str = Field(min_length=1, max_length=32, examples=["EMP001"])
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)
    name: str = Field(min_length=1, max_length=100)
    department: Optional[str] = Field(default=None, max_length=64)
    role: UserRole = UserRole.employee


class NotificationPreferences(BaseModel):
    check_in_reminder: bool
    survey_reminder: bool
    reward_updates: bool


class PreferencesUpdate(BaseModel):
    check_in_reminder: Optional[bool] = None
    survey_reminder: Optional[bool] = None
    reward_updates: Optional[bool] = None


class ProfileResponse(BaseModel):
    id: str
    employee_id: str
    email: str
    name: str
    department: Optional[str] = None
    role: str
    is_active: bool
    wellness: WellnessSnapshot
    notification_preferences: NotificationPreferences


class SurveyCompletion(BaseModel):
    survey_id: str = Field(min_length=1, max_length=64)
