import httpx
import pytest

from harmony.sync.api import BackendClient
from harmony.sync.errors import (
    InvalidTransition,
    NetworkFailure,
    NotAuthenticated,
    SyncError,
    ValidationFailure,
)

CONNECTION_JSON = {
    "id": 3,
    "requester_id": 1,
    "receiver_id": 2,
    "status": "pending",
    "message": None,
    "user": {"id": 2, "name": "Peer", "email": "peer@test.com", "title": None},
    "created_at": "2026-01-01T12:00:00",
    "accepted_at": None,
}


def backend(handler, token="token"):
    transport = httpx.MockTransport(handler)
    return BackendClient(
        httpx.AsyncClient(transport=transport, base_url="http://api.test"), token
    )


def responding(status_code, json=None):
    def handler(request):
        return httpx.Response(status_code, json=json)

    return handler


@pytest.mark.asyncio
async def test_sends_bearer_token():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers.get("authorization")
        seen["path"] = request.url.path
        return httpx.Response(200, json=[])

    api = backend(handler)
    assert await api.list_connections() == []
    assert seen == {"auth": "Bearer token", "path": "/connections"}
    await api.aclose()


@pytest.mark.asyncio
async def test_parses_connection_and_normalizes_timestamps():
    api = backend(responding(201, CONNECTION_JSON))
    connection = await api.create_connection(2, "hello")
    assert connection.id == 3
    assert connection.user.name == "Peer"
    assert connection.created_at.tzinfo is not None
    await api.aclose()


@pytest.mark.asyncio
async def test_mark_as_read_returns_updated_count():
    api = backend(responding(200, {"updated": 4}))
    assert await api.mark_as_read(2) == 4
    await api.aclose()


@pytest.mark.asyncio
async def test_delete_no_content():
    api = backend(responding(204))
    assert await api.delete_connection(3) is None
    await api.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status_code, error",
    [
        (401, NotAuthenticated),
        (503, NetworkFailure),
        (429, NetworkFailure),
        (409, InvalidTransition),
        (400, ValidationFailure),
        (422, ValidationFailure),
        (404, ValidationFailure),
        (418, SyncError),
    ],
)
async def test_status_mapping(status_code, error):
    api = backend(responding(status_code, {"detail": "nope"}))
    with pytest.raises(error) as excinfo:
        await api.list_messages(2)
    assert excinfo.value.status_code == status_code
    assert excinfo.value.message == "nope"
    await api.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [403, 404])
async def test_transition_calls_treat_missing_edge_as_race(status_code):
    api = backend(responding(status_code, {"detail": "gone"}))
    with pytest.raises(InvalidTransition):
        await api.accept_connection(3)
    with pytest.raises(InvalidTransition):
        await api.delete_connection(3)
    await api.aclose()


@pytest.mark.asyncio
async def test_transport_error_is_network_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    api = backend(handler)
    with pytest.raises(NetworkFailure) as excinfo:
        await api.list_conversations()
    assert excinfo.value.retryable is True
    await api.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [httpx.DecodingError, httpx.TooManyRedirects, httpx.ReadTimeout],
)
async def test_request_errors_never_escape_as_httpx(error):
    def handler(request):
        raise error("broken response", request=request)

    api = backend(handler)
    with pytest.raises(NetworkFailure):
        await api.list_messages(2)
    await api.aclose()


@pytest.mark.asyncio
async def test_unexpected_payload_is_network_failure():
    api = backend(responding(200, {"not": "a list"}))
    with pytest.raises(NetworkFailure):
        await api.list_users()
    await api.aclose()
