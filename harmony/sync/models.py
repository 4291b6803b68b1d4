"""Client-side domain records for connections and direct messages."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from harmony.schemas.connection import ConnectionRead
from harmony.schemas.message import ConversationSummaryRead, MessageRead


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConnectionStatus(str, Enum):
    """Relationship between the viewer and one counterpart, derived from edges."""

    NONE = "none"
    PENDING_SENT = "pending_sent"
    PENDING_RECEIVED = "pending_received"
    CONNECTED = "connected"


class EdgeRole(str, Enum):
    """The viewer's side of an edge: requester cancels, receiver rejects."""

    REQUESTER = "requester"
    RECEIVER = "receiver"


class DeliveryState(str, Enum):
    SENDING = "sending"
    FAILED = "failed"


@dataclass(frozen=True)
class ConnectionEdge:
    id: int
    requester_id: int
    receiver_id: int
    status: str
    created_at: datetime
    message: str | None = None
    accepted_at: datetime | None = None

    @classmethod
    def from_read(cls, data: ConnectionRead) -> "ConnectionEdge":
        return cls(
            id=data.id,
            requester_id=data.requester_id,
            receiver_id=data.receiver_id,
            status=data.status,
            message=data.message,
            created_at=data.created_at,
            accepted_at=data.accepted_at,
        )

    @property
    def is_local(self) -> bool:
        """Optimistic edges carry negative ids until the backend confirms them."""
        return self.id < 0

    def counterpart_of(self, viewer_id: int) -> int:
        if self.requester_id == viewer_id:
            return self.receiver_id
        return self.requester_id

    def role_of(self, viewer_id: int) -> EdgeRole | None:
        if self.requester_id == viewer_id:
            return EdgeRole.REQUESTER
        if self.receiver_id == viewer_id:
            return EdgeRole.RECEIVER
        return None

    def status_for(self, viewer_id: int) -> ConnectionStatus:
        if self.status == "accepted":
            return ConnectionStatus.CONNECTED
        if self.status != "pending":
            return ConnectionStatus.NONE
        if self.requester_id == viewer_id:
            return ConnectionStatus.PENDING_SENT
        return ConnectionStatus.PENDING_RECEIVED

    def accepted(self) -> "ConnectionEdge":
        return replace(self, status="accepted", accepted_at=utcnow())


@dataclass(frozen=True)
class Message:
    id: int
    sender_id: int
    receiver_id: int
    content: str
    created_at: datetime
    read_at: datetime | None = None

    @classmethod
    def from_read(cls, data: MessageRead) -> "Message":
        return cls(
            id=data.id,
            sender_id=data.sender_id,
            receiver_id=data.receiver_id,
            content=data.content,
            created_at=data.created_at,
            read_at=data.read_at,
        )

    @property
    def sort_key(self) -> tuple[datetime, int]:
        return (self.created_at, self.id)


@dataclass
class OptimisticMessage:
    """A locally sent message awaiting its confirmed server copy."""

    sender_id: int
    receiver_id: int
    content: str
    created_at: datetime = field(default_factory=utcnow)
    correlation_id: str = field(default_factory=lambda: uuid4().hex)
    delivery: DeliveryState = DeliveryState.SENDING
    seq: int = 0
    unmatched_cycles: int = 0

    @property
    def failed(self) -> bool:
        return self.delivery is DeliveryState.FAILED

    def matches(self, message: Message) -> bool:
        return (
            self.sender_id == message.sender_id
            and self.receiver_id == message.receiver_id
            and self.content == message.content
        )


@dataclass(frozen=True)
class LastMessage:
    content: str
    created_at: datetime
    sender_id: int


@dataclass(frozen=True)
class ConversationSummary:
    counterpart_id: int
    last_message: LastMessage
    unread_count: int
    counterpart_name: str | None = None

    @classmethod
    def from_read(cls, data: ConversationSummaryRead) -> "ConversationSummary":
        return cls(
            counterpart_id=data.counterpart_id,
            last_message=LastMessage(
                content=data.last_message.content,
                created_at=data.last_message.created_at,
                sender_id=data.last_message.sender_id,
            ),
            unread_count=data.unread_count,
            counterpart_name=data.user.name if data.user else None,
        )


@dataclass(frozen=True)
class Notice:
    """A benign, user-visible event produced by reconciliation."""

    kind: str
    text: str
    edge_id: int | None = None
    counterpart_id: int | None = None
