"""Network-facing message operations layered over the thread cache."""

from __future__ import annotations

from loguru import logger

from harmony.config import settings
from harmony.sync.api import BackendClient
from harmony.sync.conversation_index import ConversationIndex
from harmony.sync.errors import InvalidTransition, ValidationFailure
from harmony.sync.models import ConversationSummary, Message, OptimisticMessage
from harmony.sync.thread_cache import MessageThreadCache, ReconcileResult


class MessagingService:
    def __init__(
        self,
        api: BackendClient,
        threads: MessageThreadCache,
        index: ConversationIndex,
        max_message_length: int = settings.max_message_length,
    ) -> None:
        self._api = api
        self._threads = threads
        self._index = index
        self._max_message_length = max_message_length

    async def send_message(self, counterpart_id: int, content: str) -> Message:
        """Append optimistically, post, then swap in the confirmed copy.

        Empty content is refused before any network call. Any failure of the
        post removes the optimistic entry again and propagates.
        """
        text = (content or "").strip()
        if not text:
            raise ValidationFailure("Message content cannot be empty.")
        if len(text) > self._max_message_length:
            raise ValidationFailure("Message content is too long.")
        if counterpart_id == self._threads.viewer_id:
            raise ValidationFailure("Cannot message yourself.")

        entry = self._threads.append(counterpart_id, text)
        return await self._deliver(entry)

    async def retry_message(self, correlation_id: str) -> Message:
        entry = self._threads.requeue(correlation_id)
        if entry is None:
            raise InvalidTransition(f"No unsent message {correlation_id}.")
        return await self._deliver(entry)

    def discard_message(self, correlation_id: str) -> OptimisticMessage | None:
        return self._threads.rollback(correlation_id)

    async def _deliver(self, entry: OptimisticMessage) -> Message:
        try:
            confirmed = await self._api.send_message(
                entry.sender_id, entry.receiver_id, entry.content
            )
        except Exception:
            self._threads.rollback(entry.correlation_id)
            logger.warning(
                "Send to {} failed, optimistic message {} removed",
                entry.receiver_id,
                entry.correlation_id,
            )
            raise
        message = Message.from_read(confirmed)
        self._threads.confirm(entry.correlation_id, message)
        return message

    async def mark_read(self, counterpart_id: int) -> int:
        """Mark the thread read locally, then tell the backend.

        A backend failure propagates but leaves the local read state in place;
        the thread stays flagged so a later sync repeats the call.
        """
        marked = self._threads.mark_read(counterpart_id)
        await self._api.mark_as_read(counterpart_id)
        self._threads.acknowledge_read(counterpart_id)
        return marked

    async def refresh_thread(self, counterpart_id: int) -> ReconcileResult:
        as_of = self._threads.sequence
        page = await self._api.list_messages(counterpart_id)
        return self._threads.reconcile(
            counterpart_id, (Message.from_read(item) for item in page), as_of=as_of
        )

    async def refresh_summaries(self) -> list[ConversationSummary]:
        feed = await self._api.list_conversations()
        self._index.replace_feed(ConversationSummary.from_read(item) for item in feed)
        return self._index.list()
