"""The viewer's connection edges with an O(1) per-counterpart status lookup."""

from __future__ import annotations

from collections.abc import Iterable

from harmony.sync.models import ConnectionEdge, ConnectionStatus


class ConnectionStore:
    """Holds at most one edge per counterpart, in both directions."""

    def __init__(self, viewer_id: int) -> None:
        self.viewer_id = viewer_id
        self._by_id: dict[int, ConnectionEdge] = {}
        self._by_counterpart: dict[int, ConnectionEdge] = {}

    def __len__(self) -> int:
        return len(self._by_id)

    def status_of(self, counterpart_id: int) -> ConnectionStatus:
        edge = self._by_counterpart.get(counterpart_id)
        if edge is None:
            return ConnectionStatus.NONE
        return edge.status_for(self.viewer_id)

    def get(self, edge_id: int) -> ConnectionEdge | None:
        return self._by_id.get(edge_id)

    def edge_for(self, counterpart_id: int) -> ConnectionEdge | None:
        return self._by_counterpart.get(counterpart_id)

    def edges(self) -> list[ConnectionEdge]:
        return sorted(self._by_id.values(), key=lambda e: e.id)

    def connections(self) -> list[ConnectionEdge]:
        return [e for e in self.edges() if e.status == "accepted"]

    def pending_received(self) -> list[ConnectionEdge]:
        return [
            e for e in self.edges()
            if e.status_for(self.viewer_id) is ConnectionStatus.PENDING_RECEIVED
        ]

    def pending_sent(self) -> list[ConnectionEdge]:
        return [
            e for e in self.edges()
            if e.status_for(self.viewer_id) is ConnectionStatus.PENDING_SENT
        ]

    def upsert(self, edge: ConnectionEdge) -> None:
        """Insert or replace ``edge``, evicting any other edge with the same counterpart."""
        counterpart_id = edge.counterpart_of(self.viewer_id)
        previous = self._by_counterpart.get(counterpart_id)
        if previous is not None and previous.id != edge.id:
            self._by_id.pop(previous.id, None)
        stale = self._by_id.get(edge.id)
        if stale is not None:
            stale_counterpart = stale.counterpart_of(self.viewer_id)
            if stale_counterpart != counterpart_id:
                self._by_counterpart.pop(stale_counterpart, None)
        self._by_id[edge.id] = edge
        self._by_counterpart[counterpart_id] = edge

    def remove(self, edge_id: int) -> ConnectionEdge | None:
        edge = self._by_id.pop(edge_id, None)
        if edge is not None:
            counterpart_id = edge.counterpart_of(self.viewer_id)
            if self._by_counterpart.get(counterpart_id) is edge:
                del self._by_counterpart[counterpart_id]
        return edge

    def replace_all(self, edges: Iterable[ConnectionEdge]) -> None:
        """Swap in a fresh authoritative edge set in a single step.

        Local optimistic edges survive when the server set has nothing for
        their counterpart yet, since an in-flight send still owns them.
        """
        by_id: dict[int, ConnectionEdge] = {}
        by_counterpart: dict[int, ConnectionEdge] = {}
        for edge in edges:
            counterpart_id = edge.counterpart_of(self.viewer_id)
            previous = by_counterpart.get(counterpart_id)
            if previous is not None:
                # Keep the newest edge if the feeds overlap.
                if previous.id > edge.id:
                    continue
                del by_id[previous.id]
            by_id[edge.id] = edge
            by_counterpart[counterpart_id] = edge

        for edge in self._by_id.values():
            if edge.is_local:
                counterpart_id = edge.counterpart_of(self.viewer_id)
                if counterpart_id not in by_counterpart:
                    by_id[edge.id] = edge
                    by_counterpart[counterpart_id] = edge

        self._by_id, self._by_counterpart = by_id, by_counterpart

    def clear(self) -> None:
        self._by_id, self._by_counterpart = {}, {}
