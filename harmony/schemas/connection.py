from typing import Literal

from pydantic import BaseModel, Field, model_validator

from harmony.schemas.common import UtcDatetime
from harmony.schemas.user import UserSummary


class ConnectionCreate(BaseModel):
    receiver_id: int | None = None
    email: str | None = None
    message: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def require_receiver_id_or_email(self) -> "ConnectionCreate":
        if self.receiver_id is None and self.email is None:
            raise ValueError("Either receiver_id or email is required.")
        return self


class ConnectionStatusUpdate(BaseModel):
    status: Literal["accepted", "rejected"]


class ConnectionRead(BaseModel):
    id: int
    requester_id: int
    receiver_id: int
    status: str
    message: str | None = None
    user: UserSummary
    created_at: UtcDatetime
    accepted_at: UtcDatetime | None = None

    model_config = {"from_attributes": True}
