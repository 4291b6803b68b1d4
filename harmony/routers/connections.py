from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Response, status
from loguru import logger
from sqlalchemy import or_, select

from harmony.dependencies import CurrentUser, DbSession
from harmony.models.connection import Connection
from harmony.models.user import User
from harmony.schemas.connection import (
    ConnectionCreate,
    ConnectionRead,
    ConnectionStatusUpdate,
)

router = APIRouter(prefix="/connections", tags=["connections"])


def _build_response(connection: Connection, current_user: User, db) -> dict:
    """Build a ConnectionRead-compatible dict with the other user's info.

    Parameters:
        connection: The connection record.
        current_user: The authenticated user.
        db: Database session.

    Returns:
        Dict matching ConnectionRead schema.
    """
    other_user: User | None = db.get(User, connection.counterpart_of(current_user.id))
    return {
        "id": connection.id,
        "requester_id": connection.requester_id,
        "receiver_id": connection.receiver_id,
        "status": connection.status,
        "message": connection.message,
        "user": {
            "id": other_user.id,
            "name": other_user.name,
            "email": other_user.email,
            "title": other_user.title,
        },
        "created_at": connection.created_at,
        "accepted_at": connection.accepted_at,
    }


def _get_pending_for_party(
    connection_id: int, user: User, db, receiver_only: bool
) -> Connection:
    """Load a connection that the user may still transition.

    Raises:
        HTTPException: 404 if not found, 403 if the user may not act on it,
            409 if it is no longer pending.
    """
    connection: Connection | None = db.get(Connection, connection_id)
    if connection is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    if receiver_only:
        if connection.receiver_id != user.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    elif user.id not in (connection.requester_id, connection.receiver_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    if connection.status != "pending":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Connection request was already handled.",
        )
    return connection


def _accept(connection: Connection, user: User, db) -> dict:
    connection.status = "accepted"
    connection.accepted_at = datetime.now(timezone.utc)
    db.flush()
    logger.info("Connection {} accepted by user {}", connection.id, user.id)
    return _build_response(connection, user, db)


def _delete(connection: Connection, user: User, db) -> None:
    db.delete(connection)
    db.flush()
    logger.info("Connection {} removed by user {}", connection.id, user.id)


@router.post("", response_model=ConnectionRead, status_code=status.HTTP_201_CREATED)
def create_connection(
    request: ConnectionCreate, user: CurrentUser, db: DbSession
) -> dict:
    """Send a connection request to another user.

    Parameters:
        request: Connection request with receiver_id or email and an optional note.
        user: The authenticated user.
        db: Database session.

    Returns:
        The created pending connection.

    Raises:
        HTTPException: 400 if targeting yourself, 404 if user not found,
            409 if an edge already exists in either direction.
    """
    target: User | None
    if request.receiver_id is not None:
        target = db.get(User, request.receiver_id)
    else:
        target = db.execute(
            select(User).where(User.email == request.email)
        ).scalar_one_or_none()

    if target is None or not target.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)

    if target.id == user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot connect with yourself.",
        )

    existing: Connection | None = db.execute(
        select(Connection).where(
            or_(
                (Connection.requester_id == user.id)
                & (Connection.receiver_id == target.id),
                (Connection.requester_id == target.id)
                & (Connection.receiver_id == user.id),
            )
        )
    ).scalar_one_or_none()
    if existing is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT)

    connection: Connection = Connection(
        requester_id=user.id, receiver_id=target.id, message=request.message
    )
    db.add(connection)
    db.flush()
    logger.info("Connection request {} sent from {} to {}", connection.id, user.id, target.id)
    return _build_response(connection, user, db)


@router.get("", response_model=list[ConnectionRead])
def list_connections(user: CurrentUser, db: DbSession) -> list[dict]:
    """List all accepted connections for the current user."""
    connections: list[Connection] = db.execute(
        select(Connection).where(
            Connection.status == "accepted",
            or_(
                Connection.requester_id == user.id,
                Connection.receiver_id == user.id,
            ),
        ).order_by(Connection.id)
    ).scalars().all()
    return [_build_response(c, user, db) for c in connections]


@router.get("/pending", response_model=list[ConnectionRead])
def list_pending(user: CurrentUser, db: DbSession) -> list[dict]:
    """List pending connection requests received by the current user."""
    connections: list[Connection] = db.execute(
        select(Connection).where(
            Connection.status == "pending",
            Connection.receiver_id == user.id,
        ).order_by(Connection.id)
    ).scalars().all()
    return [_build_response(c, user, db) for c in connections]


@router.get("/sent-pending", response_model=list[ConnectionRead])
def list_sent_pending(user: CurrentUser, db: DbSession) -> list[dict]:
    """List pending connection requests sent by the current user."""
    connections: list[Connection] = db.execute(
        select(Connection).where(
            Connection.status == "pending",
            Connection.requester_id == user.id,
        ).order_by(Connection.id)
    ).scalars().all()
    return [_build_response(c, user, db) for c in connections]


@router.post("/{connection_id}/accept", response_model=ConnectionRead)
def accept_connection(
    connection_id: int, user: CurrentUser, db: DbSession
) -> dict:
    """Accept a pending connection request.

    Raises:
        HTTPException: 404 if not found, 403 if not the receiver,
            409 if no longer pending.
    """
    connection = _get_pending_for_party(connection_id, user, db, receiver_only=True)
    return _accept(connection, user, db)


@router.post("/{connection_id}/reject", status_code=status.HTTP_204_NO_CONTENT)
def reject_connection(
    connection_id: int, user: CurrentUser, db: DbSession
) -> None:
    """Decline a pending connection request addressed to the current user."""
    connection = _get_pending_for_party(connection_id, user, db, receiver_only=True)
    _delete(connection, user, db)


@router.patch("/{connection_id}", response_model=ConnectionRead)
def update_connection_status(
    connection_id: int,
    update: ConnectionStatusUpdate,
    user: CurrentUser,
    db: DbSession,
):
    """Accept or reject a pending request by status.

    A rejected request is deleted, so the response is 204 with no body.
    """
    connection = _get_pending_for_party(connection_id, user, db, receiver_only=True)
    if update.status == "accepted":
        return _accept(connection, user, db)
    _delete(connection, user, db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{connection_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_connection(
    connection_id: int, user: CurrentUser, db: DbSession
) -> None:
    """Reject (as receiver) or cancel (as requester) a pending request.

    Parameters:
        connection_id: The connection to delete.
        user: The authenticated user.
        db: Database session.

    Raises:
        HTTPException: 404 if not found, 403 if not a party to the connection,
            409 if the request was already accepted.
    """
    connection = _get_pending_for_party(connection_id, user, db, receiver_only=False)
    _delete(connection, user, db)
