from fastapi import APIRouter
from sqlalchemy import or_, select

from harmony.dependencies import CurrentUser, DbSession
from harmony.models.message import Message
from harmony.models.user import User
from harmony.schemas.common import as_utc
from harmony.schemas.message import ConversationSummaryRead

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.get("", response_model=list[ConversationSummaryRead])
def list_conversations(user: CurrentUser, db: DbSession) -> list[dict]:
    """Summarize every thread the current user takes part in.

    Each entry carries the thread's last message and the number of incoming
    messages still unread. Entries are ordered by last activity, newest first,
    with ties broken by counterpart id.
    """
    messages: list[Message] = db.execute(
        select(Message)
        .where(or_(Message.sender_id == user.id, Message.receiver_id == user.id))
        .order_by(Message.created_at, Message.id)
    ).scalars().all()

    summaries: dict[int, dict] = {}
    for message in messages:
        counterpart_id = message.counterpart_of(user.id)
        summary = summaries.setdefault(
            counterpart_id, {"counterpart_id": counterpart_id, "unread_count": 0}
        )
        summary["last_message"] = {
            "id": message.id,
            "sender_id": message.sender_id,
            "content": message.content,
            "created_at": as_utc(message.created_at),
        }
        if message.receiver_id == user.id and message.read_at is None:
            summary["unread_count"] += 1

    for counterpart_id, summary in summaries.items():
        other: User | None = db.get(User, counterpart_id)
        if other is not None:
            summary["user"] = {
                "id": other.id,
                "name": other.name,
                "email": other.email,
                "title": other.title,
            }

    ordered = sorted(summaries.values(), key=lambda s: s["counterpart_id"])
    ordered.sort(key=lambda s: s["last_message"]["created_at"], reverse=True)
    return ordered
