"""Recent-conversations list derived from local threads and the summary feed."""

from __future__ import annotations

from collections.abc import Iterable

from harmony.sync.models import ConversationSummary
from harmony.sync.thread_cache import MessageThread, MessageThreadCache


class ConversationIndex:
    """Projects threads plus the polled summary feed into a sorted list.

    Nothing is cached: ``list()`` recomputes from current state every time.
    """

    def __init__(self, threads: MessageThreadCache) -> None:
        self._threads = threads
        self._feed: dict[int, ConversationSummary] = {}

    def replace_feed(self, summaries: Iterable[ConversationSummary]) -> None:
        self._feed = {s.counterpart_id: s for s in summaries}

    def feed(self) -> list[ConversationSummary]:
        return list(self._feed.values())

    def summary_for(self, counterpart_id: int) -> ConversationSummary | None:
        remote = self._feed.get(counterpart_id)
        thread = self._threads.get(counterpart_id)
        local_last = thread.last_activity() if thread is not None else None

        if remote is None and local_last is None:
            return None
        if remote is None:
            last = local_last
        elif local_last is None:
            last = remote.last_message
        else:
            last = max(remote.last_message, local_last, key=lambda m: m.created_at)

        if thread is not None and thread.loaded and not self._feed_is_ahead(remote, thread):
            unread = thread.unread_count()
        elif remote is not None:
            unread = remote.unread_count
        else:
            unread = 0

        return ConversationSummary(
            counterpart_id=counterpart_id,
            last_message=last,
            unread_count=unread,
            counterpart_name=remote.counterpart_name if remote else None,
        )

    @staticmethod
    def _feed_is_ahead(remote: ConversationSummary | None, thread: MessageThread) -> bool:
        """True when the feed saw messages the loaded thread has not pulled yet.

        Reads the backend has not acknowledged keep the thread authoritative.
        """
        if remote is None or thread.read_unacked:
            return False
        synced_at = thread.last_confirmed_at()
        return synced_at is None or remote.last_message.created_at > synced_at

    def list(self) -> list[ConversationSummary]:
        """Most recent activity first; ties broken by counterpart id."""
        counterpart_ids = set(self._feed)
        counterpart_ids.update(t.counterpart_id for t in self._threads.threads() if len(t))
        summaries = [
            summary
            for summary in (self.summary_for(cid) for cid in sorted(counterpart_ids))
            if summary is not None
        ]
        summaries.sort(key=lambda s: s.last_message.created_at, reverse=True)
        return summaries

    def unread_count_for(self, counterpart_id: int) -> int:
        summary = self.summary_for(counterpart_id)
        return summary.unread_count if summary is not None else 0

    def total_unread(self) -> int:
        return sum(s.unread_count for s in self.list())

    def counterparts(self) -> set[int]:
        return {s.counterpart_id for s in self.list()}

    def clear(self) -> None:
        self._feed = {}
