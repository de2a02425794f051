from typing import Annotated

from pydantic import AliasChoices, BaseModel, Field, field_validator

from app.models.recognition import RecognitionType


class RecognitionCreate(BaseModel):
    to_user_id: str = Field(
        validation_alias=AliasChoices("to_user_id", "toUserId"),
        description="Recipient user id.",
    )
    type: RecognitionType = Field(examples=["kudos"])
    message: Annotated[str, Field(min_length=1, max_length=500)]

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v):
        return v.strip() if isinstance(v, str) else v


class RecognitionResponse(BaseModel):
    id: int
    from_user_id: str
    to_user_id: str
    type: str
    message: str
    happy_coins_awarded: int
    created_at: str


class RecognitionListResponse(BaseModel):
    total: int
    items: list[RecognitionResponse]
