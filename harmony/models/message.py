from datetime import datetime, timezone

from sqlalchemy import ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from harmony.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_pair", "sender_id", "receiver_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    sender_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    receiver_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    content: Mapped[str] = mapped_column(Text)
    # Sub-second precision keeps thread order stable between rapid sends.
    created_at: Mapped[datetime] = mapped_column(default=_utcnow)
    read_at: Mapped[datetime | None] = mapped_column(default=None)

    def counterpart_of(self, user_id: int) -> int:
        if self.sender_id == user_id:
            return self.receiver_id
        return self.sender_id
