from datetime import datetime, timezone

from harmony.sync.connection_store import ConnectionStore
from harmony.sync.models import ConnectionEdge, ConnectionStatus, EdgeRole

VIEWER = 1
CREATED = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def edge(edge_id, requester_id, receiver_id, status="pending"):
    return ConnectionEdge(
        id=edge_id,
        requester_id=requester_id,
        receiver_id=receiver_id,
        status=status,
        created_at=CREATED,
    )


def test_status_none_for_unknown_counterpart():
    store = ConnectionStore(VIEWER)
    assert store.status_of(2) is ConnectionStatus.NONE
    assert store.edge_for(2) is None


def test_status_reflects_direction():
    store = ConnectionStore(VIEWER)
    store.upsert(edge(10, VIEWER, 2))
    store.upsert(edge(11, 3, VIEWER))
    store.upsert(edge(12, 4, VIEWER, status="accepted"))

    assert store.status_of(2) is ConnectionStatus.PENDING_SENT
    assert store.status_of(3) is ConnectionStatus.PENDING_RECEIVED
    assert store.status_of(4) is ConnectionStatus.CONNECTED


def test_role_of_edge():
    sent = edge(10, VIEWER, 2)
    assert sent.role_of(VIEWER) is EdgeRole.REQUESTER
    assert sent.role_of(2) is EdgeRole.RECEIVER
    assert sent.role_of(99) is None


def test_filtered_views():
    store = ConnectionStore(VIEWER)
    store.upsert(edge(10, VIEWER, 2))
    store.upsert(edge(11, 3, VIEWER))
    store.upsert(edge(12, 4, VIEWER, status="accepted"))

    assert [e.id for e in store.pending_sent()] == [10]
    assert [e.id for e in store.pending_received()] == [11]
    assert [e.id for e in store.connections()] == [12]
    assert len(store) == 3


def test_upsert_keeps_one_edge_per_counterpart():
    store = ConnectionStore(VIEWER)
    store.upsert(edge(-1, VIEWER, 2))
    store.upsert(edge(10, VIEWER, 2))

    assert store.get(-1) is None
    assert store.edge_for(2).id == 10
    assert len(store) == 1


def test_upsert_same_id_replaces_status():
    store = ConnectionStore(VIEWER)
    pending = edge(11, 3, VIEWER)
    store.upsert(pending)
    store.upsert(pending.accepted())

    assert store.status_of(3) is ConnectionStatus.CONNECTED
    assert store.get(11).accepted_at is not None


def test_remove():
    store = ConnectionStore(VIEWER)
    store.upsert(edge(10, VIEWER, 2))

    removed = store.remove(10)

    assert removed.id == 10
    assert store.status_of(2) is ConnectionStatus.NONE
    assert store.remove(10) is None


def test_replace_all_swaps_server_set():
    store = ConnectionStore(VIEWER)
    store.upsert(edge(10, VIEWER, 2))
    store.upsert(edge(11, 3, VIEWER))

    store.replace_all([edge(11, 3, VIEWER, status="accepted"), edge(12, VIEWER, 5)])

    assert store.status_of(2) is ConnectionStatus.NONE
    assert store.status_of(3) is ConnectionStatus.CONNECTED
    assert store.status_of(5) is ConnectionStatus.PENDING_SENT


def test_replace_all_keeps_unconfirmed_local_edges():
    store = ConnectionStore(VIEWER)
    store.upsert(edge(-1, VIEWER, 2))
    store.upsert(edge(-2, VIEWER, 3))

    store.replace_all([edge(20, 3, VIEWER)])

    assert store.edge_for(2).id == -1
    assert store.status_of(3) is ConnectionStatus.PENDING_RECEIVED
    assert store.get(-2) is None


def test_replace_all_prefers_newest_overlapping_edge():
    store = ConnectionStore(VIEWER)
    store.replace_all([edge(20, VIEWER, 2), edge(21, 2, VIEWER, status="accepted")])

    assert store.edge_for(2).id == 21
    assert len(store) == 1


def test_clear():
    store = ConnectionStore(VIEWER)
    store.upsert(edge(10, VIEWER, 2))
    store.clear()
    assert store.edges() == []
    assert store.status_of(2) is ConnectionStatus.NONE
