"""Connection request state transitions with optimistic local updates."""

from __future__ import annotations

from collections import deque
from itertools import count

from loguru import logger

from harmony.sync.api import BackendClient
from harmony.sync.connection_store import ConnectionStore
from harmony.sync.errors import (
    AlreadyConnected,
    InvalidTransition,
    NetworkFailure,
    ValidationFailure,
)
from harmony.sync.models import (
    ConnectionEdge,
    ConnectionStatus,
    EdgeRole,
    Notice,
    utcnow,
)

ALREADY_HANDLED = "already_handled"


class ConnectionRequestService:
    """Runs send/accept/reject/cancel against the backend and the local store.

    Network failures roll the optimistic change back and propagate. A
    conflicting answer from the backend means the other participant got there
    first: the local change is dropped, the store is re-pulled and a notice is
    queued instead of raising.
    """

    def __init__(
        self,
        api: BackendClient,
        store: ConnectionStore,
        notices: deque[Notice] | None = None,
    ) -> None:
        self._api = api
        self._store = store
        self._notices: deque[Notice] = notices if notices is not None else deque()
        self._local_ids = count(-1, -1)

    @property
    def store(self) -> ConnectionStore:
        return self._store

    async def refresh(self) -> None:
        """Replace the store with the backend's view of the viewer's edges."""
        accepted = await self._api.list_connections()
        received = await self._api.list_pending()
        sent = await self._api.list_sent_pending()
        self._store.replace_all(
            ConnectionEdge.from_read(item) for item in (*accepted, *received, *sent)
        )

    async def send(
        self, receiver_id: int, message: str | None = None
    ) -> ConnectionEdge | None:
        viewer_id = self._store.viewer_id
        if receiver_id == viewer_id:
            raise ValidationFailure("Cannot connect with yourself.")
        status = self._store.status_of(receiver_id)
        if status is not ConnectionStatus.NONE:
            raise AlreadyConnected(
                f"Connection with user {receiver_id} is already {status.value}."
            )

        note = message.strip() if message else None
        optimistic = ConnectionEdge(
            id=next(self._local_ids),
            requester_id=viewer_id,
            receiver_id=receiver_id,
            status="pending",
            message=note or None,
            created_at=utcnow(),
        )
        self._store.upsert(optimistic)
        try:
            confirmed = await self._api.create_connection(receiver_id, note or None)
        except InvalidTransition as exc:
            self._store.remove(optimistic.id)
            await self._resync(exc, counterpart_id=receiver_id)
            return self._store.edge_for(receiver_id)
        except Exception:
            self._store.remove(optimistic.id)
            logger.warning("Connection request to {} rolled back", receiver_id)
            raise

        edge = ConnectionEdge.from_read(confirmed)
        self._store.remove(optimistic.id)
        self._store.upsert(edge)
        return edge

    async def accept(self, edge_id: int) -> ConnectionEdge | None:
        edge = self._require_pending(edge_id, EdgeRole.RECEIVER)
        self._store.upsert(edge.accepted())
        try:
            confirmed = await self._api.accept_connection(edge_id)
        except InvalidTransition as exc:
            await self._resync(exc, edge_id=edge_id)
            return self._store.get(edge_id)
        except Exception:
            self._store.upsert(edge)
            logger.warning("Accepting connection {} rolled back", edge_id)
            raise

        accepted = ConnectionEdge.from_read(confirmed)
        self._store.upsert(accepted)
        return accepted

    async def reject_or_cancel(self, edge_id: int, role: EdgeRole) -> None:
        """Delete a pending edge: the receiver rejects, the requester cancels."""
        edge = self._require_pending(edge_id, role)
        self._store.remove(edge_id)
        try:
            await self._api.delete_connection(edge_id)
        except InvalidTransition as exc:
            await self._resync(exc, edge_id=edge_id)
        except Exception:
            self._store.upsert(edge)
            logger.warning("Removing connection {} rolled back", edge_id)
            raise
        else:
            # A poll may have restored the edge while the delete was in flight.
            self._store.remove(edge_id)

    async def reject(self, edge_id: int) -> None:
        await self.reject_or_cancel(edge_id, EdgeRole.RECEIVER)

    async def cancel(self, edge_id: int) -> None:
        await self.reject_or_cancel(edge_id, EdgeRole.REQUESTER)

    def _require_pending(self, edge_id: int, role: EdgeRole) -> ConnectionEdge:
        edge = self._store.get(edge_id)
        if edge is None:
            raise InvalidTransition(f"Connection {edge_id} does not exist.")
        if edge.is_local:
            raise InvalidTransition(f"Connection {edge_id} is not confirmed yet.")
        if edge.status != "pending":
            raise InvalidTransition(f"Connection {edge_id} is already {edge.status}.")
        if role is None or edge.role_of(self._store.viewer_id) is not role:
            raise InvalidTransition(f"Viewer may not do that to connection {edge_id}.")
        return edge

    async def _resync(
        self,
        exc: InvalidTransition,
        edge_id: int | None = None,
        counterpart_id: int | None = None,
    ) -> None:
        logger.info(
            "Connection race detected (edge={}, counterpart={}): {}",
            edge_id,
            counterpart_id,
            exc.message,
        )
        self._notices.append(
            Notice(
                kind=ALREADY_HANDLED,
                text="This request was already handled.",
                edge_id=edge_id,
                counterpart_id=counterpart_id,
            )
        )
        try:
            await self.refresh()
        except NetworkFailure as refresh_exc:
            # Leave the store as is; the next scheduled sync re-pulls it.
            logger.warning("Re-sync after race failed: {}", refresh_exc)
            if edge_id is not None:
                self._store.remove(edge_id)
