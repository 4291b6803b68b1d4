from pydantic import BaseModel

from harmony.schemas.common import UtcDatetime


class UserRead(BaseModel):
    id: int
    email: str
    name: str
    title: str | None = None
    is_active: bool
    created_at: UtcDatetime

    model_config = {"from_attributes": True}


class UserSummary(BaseModel):
    id: int
    name: str
    email: str
    title: str | None = None

    model_config = {"from_attributes": True}
