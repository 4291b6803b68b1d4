"""Per-counterpart message threads merging optimistic sends with polled pages.

Every mutating method here is synchronous. Under asyncio that makes each of
them atomic with respect to the others: a reconciliation can never observe a
half-appended optimistic entry.
"""

from __future__ import annotations

from bisect import insort
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime
from itertools import count
from operator import attrgetter

from loguru import logger

from harmony.sync.models import (
    DeliveryState,
    LastMessage,
    Message,
    OptimisticMessage,
    utcnow,
)

_sort_key = attrgetter("sort_key")


@dataclass
class ReconcileResult:
    inserted: list[Message] = field(default_factory=list)
    matched: list[str] = field(default_factory=list)
    updated: int = 0
    newly_failed: list[OptimisticMessage] = field(default_factory=list)
    incoming_unread: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.inserted or self.matched or self.updated or self.newly_failed)


class MessageThread:
    """Ordered history between the viewer and one counterpart.

    Confirmed messages are kept sorted by ``(created_at, id)``; optimistic
    entries follow them in send order.
    """

    def __init__(self, viewer_id: int, counterpart_id: int) -> None:
        self.viewer_id = viewer_id
        self.counterpart_id = counterpart_id
        self.loaded = False
        self.read_unacked = False
        self._confirmed: list[Message] = []
        self._by_id: dict[int, Message] = {}
        self._pending: list[OptimisticMessage] = []
        self._locally_read: dict[int, datetime] = {}

    def __len__(self) -> int:
        return len(self._confirmed) + len(self._pending)

    def messages(self) -> list[Message | OptimisticMessage]:
        return [*self._confirmed, *self._pending]

    def confirmed(self) -> list[Message]:
        return list(self._confirmed)

    def pending(self) -> list[OptimisticMessage]:
        return list(self._pending)

    def failed(self) -> list[OptimisticMessage]:
        return [p for p in self._pending if p.failed]

    def unread_count(self) -> int:
        """Incoming messages with no read receipt; outgoing ones never count."""
        return sum(
            1 for m in self._confirmed
            if m.sender_id == self.counterpart_id and m.read_at is None
        )

    def last_confirmed_at(self) -> datetime | None:
        return self._confirmed[-1].created_at if self._confirmed else None

    def last_activity(self) -> LastMessage | None:
        candidates: list[LastMessage] = []
        if self._confirmed:
            last = self._confirmed[-1]
            candidates.append(LastMessage(last.content, last.created_at, last.sender_id))
        if self._pending:
            last_pending = self._pending[-1]
            candidates.append(
                LastMessage(last_pending.content, last_pending.created_at, last_pending.sender_id)
            )
        if not candidates:
            return None
        return max(candidates, key=attrgetter("created_at"))

    def find_pending(self, correlation_id: str) -> OptimisticMessage | None:
        for entry in self._pending:
            if entry.correlation_id == correlation_id:
                return entry
        return None

    def _insert(self, message: Message) -> bool:
        if message.id in self._by_id:
            return False
        self._by_id[message.id] = message
        insort(self._confirmed, message, key=_sort_key)
        return True

    def _update(self, message: Message) -> bool:
        current = self._by_id[message.id]
        read_at = message.read_at
        if read_at is None and message.id in self._locally_read:
            read_at = self._locally_read[message.id]
        elif read_at is not None:
            self._locally_read.pop(message.id, None)
        merged = replace(message, read_at=read_at)
        if merged == current:
            return False
        self._by_id[message.id] = merged
        if merged.sort_key == current.sort_key:
            index = self._confirmed.index(current)
            self._confirmed[index] = merged
        else:
            self._confirmed.remove(current)
            insort(self._confirmed, merged, key=_sort_key)
        return True

    def _take_match(self, message: Message) -> OptimisticMessage | None:
        # Oldest unmatched entry first, so identical rapid sends pair off FIFO.
        for index, entry in enumerate(self._pending):
            if entry.matches(message):
                return self._pending.pop(index)
        return None


class MessageThreadCache:
    """All threads of one viewer, keyed by counterpart id."""

    def __init__(self, viewer_id: int, max_unmatched_cycles: int = 3) -> None:
        self.viewer_id = viewer_id
        self.max_unmatched_cycles = max_unmatched_cycles
        self._threads: dict[int, MessageThread] = {}
        self._by_correlation: dict[str, int] = {}
        self._seq = count(1)
        self._last_seq = 0

    @property
    def sequence(self) -> int:
        """Ordinal of the latest optimistic append, used to age entries fairly."""
        return self._last_seq

    def thread(self, counterpart_id: int) -> MessageThread:
        thread = self._threads.get(counterpart_id)
        if thread is None:
            thread = MessageThread(self.viewer_id, counterpart_id)
            self._threads[counterpart_id] = thread
        return thread

    def get(self, counterpart_id: int) -> MessageThread | None:
        return self._threads.get(counterpart_id)

    def threads(self) -> list[MessageThread]:
        return list(self._threads.values())

    def find(self, correlation_id: str) -> OptimisticMessage | None:
        counterpart_id = self._by_correlation.get(correlation_id)
        if counterpart_id is None:
            return None
        return self._threads[counterpart_id].find_pending(correlation_id)

    def append(self, counterpart_id: int, content: str) -> OptimisticMessage:
        """Add a locally sent message, visible to readers immediately."""
        entry = OptimisticMessage(
            sender_id=self.viewer_id,
            receiver_id=counterpart_id,
            content=content,
            seq=self._next_seq(),
        )
        self.thread(counterpart_id)._pending.append(entry)
        self._by_correlation[entry.correlation_id] = counterpart_id
        return entry

    def requeue(self, correlation_id: str) -> OptimisticMessage | None:
        """Mark a failed entry as sending again, moving it to the tail."""
        entry = self.find(correlation_id)
        if entry is None:
            return None
        thread = self._threads[entry.receiver_id]
        thread._pending.remove(entry)
        entry.delivery = DeliveryState.SENDING
        entry.unmatched_cycles = 0
        entry.created_at = utcnow()
        entry.seq = self._next_seq()
        thread._pending.append(entry)
        return entry

    def confirm(self, correlation_id: str, message: Message) -> bool:
        """Replace the optimistic entry with its confirmed copy.

        If a poll already matched the entry, the confirmed copy is only added
        when it is not in the thread yet. Returns True if the thread changed.
        """
        thread = self.thread(self._counterpart(message))
        entry = thread.find_pending(correlation_id)
        if entry is not None:
            thread._pending.remove(entry)
        self._by_correlation.pop(correlation_id, None)
        if message.id in thread._by_id:
            return entry is not None
        thread._insert(message)
        return True

    def rollback(self, correlation_id: str) -> OptimisticMessage | None:
        entry = self.find(correlation_id)
        if entry is None:
            return None
        self._threads[entry.receiver_id]._pending.remove(entry)
        del self._by_correlation[correlation_id]
        return entry

    def reconcile(
        self,
        counterpart_id: int,
        server_messages: Iterable[Message],
        as_of: int | None = None,
    ) -> ReconcileResult:
        """Merge an authoritative page into the thread.

        Known ids are updated in place, unknown ones first try to replace the
        oldest optimistic entry with the same sender and content, and are
        otherwise inserted in timestamp order. Optimistic entries appended no
        later than ``as_of`` that stay unmatched age by one cycle and are
        flagged failed after ``max_unmatched_cycles``.
        """
        thread = self.thread(counterpart_id)
        result = ReconcileResult()
        for message in server_messages:
            if message.id in thread._by_id:
                if thread._update(message):
                    result.updated += 1
                continue
            entry = thread._take_match(message)
            if entry is not None:
                self._by_correlation.pop(entry.correlation_id, None)
                result.matched.append(entry.correlation_id)
            thread._insert(message)
            result.inserted.append(message)
            if message.sender_id == counterpart_id and message.read_at is None:
                result.incoming_unread += 1

        for entry in thread._pending:
            if entry.failed or (as_of is not None and entry.seq > as_of):
                continue
            entry.unmatched_cycles += 1
            if entry.unmatched_cycles >= self.max_unmatched_cycles:
                entry.delivery = DeliveryState.FAILED
                result.newly_failed.append(entry)
                logger.warning(
                    "Message {} to {} unconfirmed after {} syncs, flagged as failed",
                    entry.correlation_id,
                    counterpart_id,
                    entry.unmatched_cycles,
                )
        thread.loaded = True
        return result

    def mark_read(self, counterpart_id: int, at: datetime | None = None) -> int:
        """Set a local read receipt on every unread incoming message.

        Idempotent: a second call finds nothing left to mark. Returns how many
        messages were marked.
        """
        thread = self.get(counterpart_id)
        if thread is None:
            return 0
        at = at or utcnow()
        marked = 0
        for index, message in enumerate(thread._confirmed):
            if message.sender_id == counterpart_id and message.read_at is None:
                updated = replace(message, read_at=at)
                thread._confirmed[index] = updated
                thread._by_id[message.id] = updated
                thread._locally_read[message.id] = at
                marked += 1
        if marked:
            thread.read_unacked = True
        return marked

    def acknowledge_read(self, counterpart_id: int) -> None:
        thread = self.get(counterpart_id)
        if thread is not None:
            thread.read_unacked = False

    def clear(self) -> None:
        self._threads.clear()
        self._by_correlation.clear()

    def _next_seq(self) -> int:
        self._last_seq = next(self._seq)
        return self._last_seq

    def _counterpart(self, message: Message) -> int:
        if message.sender_id == self.viewer_id:
            return message.receiver_id
        return message.sender_id
