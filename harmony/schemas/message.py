from pydantic import BaseModel, field_validator

from harmony.config import settings
from harmony.schemas.common import UtcDatetime
from harmony.schemas.user import UserSummary


class MessageCreate(BaseModel):
    receiver_id: int
    content: str
    sender_id: int | None = None

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Message content cannot be empty.")
        if len(value) > settings.max_message_length:
            raise ValueError("Message content is too long.")
        return value


class MessageRead(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    content: str
    created_at: UtcDatetime
    read_at: UtcDatetime | None = None

    model_config = {"from_attributes": True}


class MarkReadRequest(BaseModel):
    other_user_id: int


class MarkReadResponse(BaseModel):
    updated: int


class LastMessageRead(BaseModel):
    id: int
    sender_id: int
    content: str
    created_at: UtcDatetime


class ConversationSummaryRead(BaseModel):
    counterpart_id: int
    user: UserSummary | None = None
    last_message: LastMessageRead
    unread_count: int
