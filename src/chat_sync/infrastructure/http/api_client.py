"""REST client for the chat backend."""
from __future__ import annotations

import logging
import uuid
from types import TracebackType
from typing import Any, Self, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from chat_sync.application.dto.auth import AuthResult
from chat_sync.application.dto.snapshot import PrivateChatSnapshot
from chat_sync.application.exceptions import AuthFailure, DecodeFailure, NetworkFailure
from chat_sync.config import settings
from chat_sync.domain.entities.conversation import GroupConversation
from chat_sync.domain.entities.identity import Identity
from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.ids import ChatId, UserId
from chat_sync.infrastructure.http.schemas import (
    AuthResponse,
    CreateGroupRequest,
    CredentialsRequest,
    GroupResponse,
    PrivateChatResponse,
    UserResponse,
)
from chat_sync.infrastructure.socket.protocol import decode_messages

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
GENERIC_ERROR = "Something went wrong"

M = TypeVar("M", bound=BaseModel)


async def _log_response(response: httpx.Response) -> None:
    request = response.request
    logger.debug(
        "%s %s %s request_id=%s",
        request.method,
        request.url.path,
        response.status_code,
        request.headers.get(REQUEST_ID_HEADER),
    )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return GENERIC_ERROR
    if isinstance(body, dict):
        message = body.get("message") or body.get("detail")
        if message:
            return str(message)
    return GENERIC_ERROR


def _parse(model: type[M], data: Any) -> M:
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise DecodeFailure(f"Unexpected {model.__name__} payload: {exc}") from exc


class HttpChatApi:
    """Implements application.ports.api.ChatApi over httpx."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_url,
            timeout=timeout or settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
            event_hooks={"response": [_log_response]},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # -- auth --

    async def login(self, username: str, password: str) -> AuthResult:
        return await self._authenticate("/auth/login", username, password)

    async def signup(self, username: str, password: str) -> AuthResult:
        return await self._authenticate("/auth/signup", username, password)

    async def me(self, token: str) -> Identity:
        data = await self._request("GET", "/auth/me", token=token)
        if isinstance(data, dict) and isinstance(data.get("user"), dict):
            data = data["user"]
        return _parse(UserResponse, data).to_domain()

    async def _authenticate(self, path: str, username: str, password: str) -> AuthResult:
        body = CredentialsRequest(username=username, password=password)
        data = await self._request("POST", path, json=body.model_dump())
        parsed = _parse(AuthResponse, data)
        return AuthResult(token=parsed.token, identity=parsed.user.to_domain())

    # -- directory --

    async def list_users(self, token: str) -> list[Identity]:
        data = await self._request("GET", "/users", token=token)
        return [_parse(UserResponse, item).to_domain() for item in data or []]

    # -- private chats --

    async def start_private_chat(self, token: str, user_id: UserId) -> PrivateChatSnapshot:
        data = await self._request("POST", "/chats/private", token=token, json={"userId": user_id})
        parsed = _parse(PrivateChatResponse, data)
        return PrivateChatSnapshot(
            chat_id=ChatId(parsed.chat_id),
            messages=decode_messages(parsed.messages, default_chat_id=parsed.chat_id),
        )

    async def delete_private_chat(self, token: str, user_id: UserId) -> None:
        await self._request("DELETE", "/chats/private", token=token, json={"userId": user_id})

    # -- groups --

    async def list_groups(self, token: str) -> list[GroupConversation]:
        data = await self._request("GET", "/chats/group", token=token)
        return [_parse(GroupResponse, item).to_domain() for item in data or []]

    async def create_group(self, token: str, name: str, member_ids: list[UserId]) -> GroupConversation:
        body = CreateGroupRequest(name=name, member_ids=list(member_ids))
        data = await self._request(
            "POST", "/chats/group", token=token, json=body.model_dump(by_alias=True),
        )
        return _parse(GroupResponse, data).to_domain()

    async def fetch_group_messages(self, token: str, chat_id: ChatId) -> list[Message]:
        data = await self._request("GET", f"/chats/group/fetch/{chat_id}", token=token)
        return decode_messages(data or [], default_chat_id=chat_id)

    async def fetch_group_members(self, token: str, chat_id: ChatId) -> list[str]:
        data = await self._request("GET", f"/chats/group/fetch/{chat_id}/members", token=token)
        if not isinstance(data, list):
            raise DecodeFailure("Expected a list of member names")
        return [str(name) for name in data]

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        json: Any = None,
    ) -> Any:
        request_id = uuid.uuid4().hex
        headers = {REQUEST_ID_HEADER: request_id}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            response = await self._client.request(method, path, headers=headers, json=json)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed (request_id=%s): %s", method, path, request_id, exc)
            raise NetworkFailure(str(exc) or GENERIC_ERROR) from exc

        if response.status_code == 204:
            return None
        if response.is_success:
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as exc:
                raise DecodeFailure(f"Invalid JSON from {path}") from exc

        detail = _error_message(response)
        logger.info(
            "%s %s -> %d (request_id=%s): %s",
            method, path, response.status_code, request_id, detail,
        )
        if response.status_code == 401:
            raise AuthFailure(detail)
        raise NetworkFailure(detail, status_code=response.status_code)
