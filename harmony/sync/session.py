"""Per-viewer entry point for UI code: connections, threads and polling."""

from __future__ import annotations

from collections import deque

from loguru import logger

from harmony.config import Settings, settings as default_settings
from harmony.schemas.user import UserSummary
from harmony.sync.api import BackendClient
from harmony.sync.connection_service import ConnectionRequestService
from harmony.sync.connection_store import ConnectionStore
from harmony.sync.conversation_index import ConversationIndex
from harmony.sync.errors import InvalidTransition
from harmony.sync.messaging import MessagingService
from harmony.sync.models import (
    ConnectionEdge,
    ConnectionStatus,
    ConversationSummary,
    EdgeRole,
    Message,
    Notice,
    OptimisticMessage,
)
from harmony.sync.scheduler import SyncScheduler
from harmony.sync.thread_cache import MessageThreadCache


class MessagingSession:
    """All connection and messaging state of one signed-in viewer.

    Create one at sign-in and close it at sign-out; nothing here is global.

    Usage::

        async with MessagingSession.connect(viewer_id, token) as session:
            await session.show_conversation_list()
            await session.open_thread(counterpart_id)
            await session.send_message(counterpart_id, "hi")
    """

    def __init__(
        self,
        viewer_id: int,
        api: BackendClient,
        settings: Settings | None = None,
        owns_api: bool = False,
    ) -> None:
        config = settings or default_settings
        self.viewer_id = viewer_id
        self._api = api
        self._owns_api = owns_api
        self._notices: deque[Notice] = deque()

        self.connections = ConnectionStore(viewer_id)
        self.threads = MessageThreadCache(viewer_id, config.optimistic_max_cycles)
        self.index = ConversationIndex(self.threads)
        self.connection_service = ConnectionRequestService(api, self.connections, self._notices)
        self.messaging = MessagingService(
            api, self.threads, self.index, config.max_message_length
        )
        self.scheduler = SyncScheduler(
            self.messaging,
            self.connection_service,
            self.threads,
            summary_interval=config.summary_poll_interval,
            thread_interval=config.thread_poll_interval,
        )
        self.closed = False

    @classmethod
    def connect(
        cls, viewer_id: int, token: str, settings: Settings | None = None
    ) -> "MessagingSession":
        config = settings or default_settings
        api = BackendClient.connect(config.api_base_url, token, config.request_timeout)
        return cls(viewer_id, api, config, owns_api=True)

    async def __aenter__(self) -> "MessagingSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Stop polling and drop all cached state (sign-out)."""
        if self.closed:
            return
        self.closed = True
        await self.scheduler.aclose()
        self.connections.clear()
        self.threads.clear()
        self.index.clear()
        self._notices.clear()
        if self._owns_api:
            await self._api.aclose()
        logger.info("Messaging session for viewer {} closed", self.viewer_id)

    # Connections

    def connection_status(self, counterpart_id: int) -> ConnectionStatus:
        return self.connections.status_of(counterpart_id)

    async def send_connection_request(
        self, receiver_id: int, message: str | None = None
    ) -> ConnectionEdge | None:
        return await self.connection_service.send(receiver_id, message)

    async def accept_connection_request(self, edge_id: int) -> ConnectionEdge | None:
        return await self.connection_service.accept(edge_id)

    async def reject_or_cancel(self, edge_id: int, role: EdgeRole | None = None) -> None:
        """Remove a pending request; the viewer's role is inferred when omitted."""
        if role is None:
            edge = self.connections.get(edge_id)
            if edge is None:
                raise InvalidTransition(f"Connection {edge_id} does not exist.")
            role = edge.role_of(self.viewer_id)
        await self.connection_service.reject_or_cancel(edge_id, role)

    # Messaging

    async def open_thread(self, counterpart_id: int) -> list[Message | OptimisticMessage]:
        await self.scheduler.open_thread(counterpart_id)
        return self.thread(counterpart_id)

    def close_thread(self) -> None:
        self.scheduler.close_thread()

    async def show_conversation_list(self) -> list[ConversationSummary]:
        await self.scheduler.show_conversation_list()
        return self.conversation_list()

    def hide_conversation_list(self) -> None:
        self.scheduler.hide_conversation_list()

    async def send_message(self, counterpart_id: int, content: str) -> Message:
        return await self.messaging.send_message(counterpart_id, content)

    async def retry_message(self, correlation_id: str) -> Message:
        return await self.messaging.retry_message(correlation_id)

    def discard_message(self, correlation_id: str) -> OptimisticMessage | None:
        return self.messaging.discard_message(correlation_id)

    async def mark_read(self, counterpart_id: int) -> int:
        return await self.messaging.mark_read(counterpart_id)

    def thread(self, counterpart_id: int) -> list[Message | OptimisticMessage]:
        thread = self.threads.get(counterpart_id)
        return thread.messages() if thread is not None else []

    def conversation_list(self) -> list[ConversationSummary]:
        return self.index.list()

    def unread_count_for(self, counterpart_id: int) -> int:
        return self.index.unread_count_for(counterpart_id)

    async def refresh(self) -> None:
        """Pull connections, the summary feed and the open thread once."""
        await self.scheduler.poll_summaries()
        if self.scheduler.active_thread is not None:
            await self.scheduler.poll_thread(self.scheduler.active_thread)

    async def discoverable_users(self) -> list[UserSummary]:
        """Users the viewer has no conversation with yet."""
        known = self.index.counterparts()
        users = await self._api.list_users()
        return [u for u in users if u.id not in known and u.id != self.viewer_id]

    def drain_notices(self) -> list[Notice]:
        notices = list(self._notices)
        self._notices.clear()
        return notices
