"""Async HTTP client for the connections and messaging endpoints.

Every call maps transport problems and HTTP error statuses onto the
``harmony.sync.errors`` taxonomy, so callers never handle httpx exceptions.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from harmony.schemas.connection import ConnectionRead
from harmony.schemas.message import (
    ConversationSummaryRead,
    MarkReadResponse,
    MessageRead,
)
from harmony.schemas.user import UserSummary
from harmony.sync.errors import (
    InvalidTransition,
    NetworkFailure,
    NotAuthenticated,
    SyncError,
    ValidationFailure,
)

RETRYABLE_STATUSES = {408, 425, 429, 500, 502, 503, 504}

_connections = TypeAdapter(list[ConnectionRead])
_messages = TypeAdapter(list[MessageRead])
_summaries = TypeAdapter(list[ConversationSummaryRead])
_users = TypeAdapter(list[UserSummary])


class BackendClient:
    """Thin async wrapper over the REST contract, authenticated as one viewer."""

    def __init__(self, client: httpx.AsyncClient, token: str | None = None) -> None:
        self._client = client
        self._headers: dict[str, str] = {"Accept": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    @classmethod
    def connect(cls, base_url: str, token: str, timeout: float = 10.0) -> "BackendClient":
        return cls(httpx.AsyncClient(base_url=base_url, timeout=timeout), token)

    async def aclose(self) -> None:
        await self._client.aclose()

    # Connections

    async def create_connection(
        self, receiver_id: int, message: str | None = None
    ) -> ConnectionRead:
        payload: dict[str, Any] = {"receiver_id": receiver_id}
        if message:
            payload["message"] = message
        data = await self._request("POST", "/connections", json=payload)
        return self._parse(ConnectionRead.model_validate, data)

    async def accept_connection(self, connection_id: int) -> ConnectionRead:
        data = await self._request(
            "POST", f"/connections/{connection_id}/accept", transition=True
        )
        return self._parse(ConnectionRead.model_validate, data)

    async def delete_connection(self, connection_id: int) -> None:
        await self._request("DELETE", f"/connections/{connection_id}", transition=True)

    async def list_connections(self) -> list[ConnectionRead]:
        return self._parse(_connections.validate_python, await self._request("GET", "/connections"))

    async def list_pending(self) -> list[ConnectionRead]:
        data = await self._request("GET", "/connections/pending")
        return self._parse(_connections.validate_python, data)

    async def list_sent_pending(self) -> list[ConnectionRead]:
        data = await self._request("GET", "/connections/sent-pending")
        return self._parse(_connections.validate_python, data)

    # Messages

    async def send_message(
        self, sender_id: int, receiver_id: int, content: str
    ) -> MessageRead:
        data = await self._request(
            "POST",
            "/messages",
            json={"sender_id": sender_id, "receiver_id": receiver_id, "content": content},
        )
        return self._parse(MessageRead.model_validate, data)

    async def list_messages(self, counterpart_id: int) -> list[MessageRead]:
        data = await self._request("GET", f"/messages/{counterpart_id}")
        return self._parse(_messages.validate_python, data)

    async def list_conversations(self) -> list[ConversationSummaryRead]:
        data = await self._request("GET", "/conversations")
        return self._parse(_summaries.validate_python, data)

    async def mark_as_read(self, other_user_id: int) -> int:
        data = await self._request(
            "POST", "/messages/mark-as-read", json={"other_user_id": other_user_id}
        )
        return self._parse(MarkReadResponse.model_validate, data).updated

    async def list_users(self) -> list[UserSummary]:
        return self._parse(_users.validate_python, await self._request("GET", "/users"))

    # Plumbing

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json: dict[str, Any] | None = None,
        transition: bool = False,
    ) -> Any:
        try:
            response = await self._client.request(
                method, url, json=json, headers=self._headers
            )
        except httpx.RequestError as exc:
            logger.warning("{} {} failed: {}", method, url, exc)
            raise NetworkFailure(f"{method} {url} failed: {exc}") from exc

        self._raise_for_status(response, transition)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise NetworkFailure(f"Malformed response from {url}") from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response, transition: bool) -> None:
        """Classify non-2xx responses.

        On transition calls a 404 or 403 means the edge was already resolved
        (or removed) by the other side, which is a race rather than a user error.
        """
        code = response.status_code
        if code < 400:
            return
        detail = _detail(response)
        if code == 401:
            raise NotAuthenticated(detail, code)
        if code in RETRYABLE_STATUSES:
            raise NetworkFailure(detail, code)
        if code == 409 or (transition and code in (403, 404)):
            raise InvalidTransition(detail, code)
        if code in (400, 403, 404, 422):
            raise ValidationFailure(detail, code)
        raise SyncError(detail, code)

    @staticmethod
    def _parse(parser, data: Any):
        try:
            return parser(data)
        except ValidationError as exc:
            raise NetworkFailure(f"Unexpected response payload: {exc}") from exc


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return response.text
