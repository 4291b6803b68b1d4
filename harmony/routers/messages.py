from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, status
from loguru import logger
from sqlalchemy import or_, select, update

from harmony.dependencies import CurrentUser, DbSession, get_user_or_404
from harmony.models.message import Message
from harmony.schemas.message import (
    MarkReadRequest,
    MarkReadResponse,
    MessageCreate,
    MessageRead,
)

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
def send_message(request: MessageCreate, user: CurrentUser, db: DbSession) -> Message:
    """Store a direct message from the current user.

    Parameters:
        request: Receiver and content; sender_id, if given, must be the caller.
        user: The authenticated user.
        db: Database session.

    Returns:
        The confirmed message.

    Raises:
        HTTPException: 403 if sender_id names someone else, 400 if messaging
            yourself, 404 if the receiver does not exist.
    """
    if request.sender_id is not None and request.sender_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    if request.receiver_id == user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot message yourself.",
        )
    get_user_or_404(request.receiver_id, db)

    message = Message(
        sender_id=user.id,
        receiver_id=request.receiver_id,
        content=request.content,
    )
    db.add(message)
    db.flush()
    logger.debug("Message {} stored from {} to {}", message.id, user.id, request.receiver_id)
    return message


@router.post("/mark-as-read", response_model=MarkReadResponse)
def mark_as_read(request: MarkReadRequest, user: CurrentUser, db: DbSession) -> dict:
    """Mark every unread message from other_user_id to the caller as read.

    Repeating the call is harmless: it only touches messages still unread.
    """
    result = db.execute(
        update(Message)
        .where(
            Message.sender_id == request.other_user_id,
            Message.receiver_id == user.id,
            Message.read_at.is_(None),
        )
        .values(read_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session="fetch")
    )
    db.flush()
    return {"updated": result.rowcount or 0}


@router.get("/{counterpart_id}", response_model=list[MessageRead])
def list_thread(counterpart_id: int, user: CurrentUser, db: DbSession) -> list[Message]:
    """Return the full history between the caller and counterpart_id, oldest first."""
    return db.execute(
        select(Message)
        .where(
            or_(
                (Message.sender_id == user.id)
                & (Message.receiver_id == counterpart_id),
                (Message.sender_id == counterpart_id)
                & (Message.receiver_id == user.id),
            )
        )
        .order_by(Message.created_at, Message.id)
    ).scalars().all()
