from datetime import datetime, timezone

import pytest

from harmony.schemas.message import MessageRead
from harmony.sync.conversation_index import ConversationIndex
from harmony.sync.errors import InvalidTransition, NetworkFailure, ValidationFailure
from harmony.sync.messaging import MessagingService
from harmony.sync.models import Message
from harmony.sync.thread_cache import MessageThreadCache

VIEWER = 1
PEER = 2
NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeBackend:
    def __init__(self):
        self.sent = []
        self.read_calls = []
        self.fail_send = False
        self.fail_read = False
        self.next_id = 100

    async def send_message(self, sender_id, receiver_id, content):
        self.sent.append(content)
        if self.fail_send:
            raise NetworkFailure("offline")
        self.next_id += 1
        return MessageRead(
            id=self.next_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            created_at=NOW,
        )

    async def mark_as_read(self, other_user_id):
        self.read_calls.append(other_user_id)
        if self.fail_read:
            raise NetworkFailure("offline")
        return 1


def build(max_length=20):
    api = FakeBackend()
    threads = MessageThreadCache(VIEWER, max_unmatched_cycles=1)
    service = MessagingService(api, threads, ConversationIndex(threads), max_length)
    return service, api, threads


@pytest.mark.asyncio
async def test_send_confirms_message():
    service, api, threads = build()

    message = await service.send_message(PEER, "  hi  ")

    assert message.content == "hi"
    assert api.sent == ["hi"]
    assert threads.get(PEER).messages() == [message]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "counterpart_id, content",
    [(PEER, ""), (PEER, "   "), (PEER, "x" * 21), (VIEWER, "hi")],
)
async def test_invalid_send_never_reaches_backend(counterpart_id, content):
    service, api, threads = build()

    with pytest.raises(ValidationFailure):
        await service.send_message(counterpart_id, content)

    assert api.sent == []
    assert threads.get(counterpart_id) is None


@pytest.mark.asyncio
async def test_network_failure_removes_optimistic_entry():
    service, api, threads = build()
    api.fail_send = True

    with pytest.raises(NetworkFailure):
        await service.send_message(PEER, "hi")

    assert threads.get(PEER).messages() == []


@pytest.mark.asyncio
async def test_retry_failed_message():
    service, api, threads = build()
    entry = threads.append(PEER, "lost")
    threads.reconcile(PEER, [])
    assert entry.failed

    message = await service.retry_message(entry.correlation_id)

    assert api.sent == ["lost"]
    assert threads.get(PEER).messages() == [message]


@pytest.mark.asyncio
async def test_retry_unknown_message():
    service, _, _ = build()
    with pytest.raises(InvalidTransition):
        await service.retry_message("missing")


def test_discard_failed_message():
    service, _, threads = build()
    entry = threads.append(PEER, "lost")

    assert service.discard_message(entry.correlation_id) is entry
    assert threads.get(PEER).messages() == []


@pytest.mark.asyncio
async def test_mark_read_failure_keeps_local_state():
    service, api, threads = build()
    threads.reconcile(PEER, [
        Message(id=1, sender_id=PEER, receiver_id=VIEWER, content="hey", created_at=NOW)
    ])
    api.fail_read = True

    with pytest.raises(NetworkFailure):
        await service.mark_read(PEER)

    thread = threads.get(PEER)
    assert thread.unread_count() == 0
    assert thread.read_unacked is True

    api.fail_read = False
    assert await service.mark_read(PEER) == 0
    assert thread.read_unacked is False
    assert api.read_calls == [PEER, PEER]
