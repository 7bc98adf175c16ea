from __future__ import annotations

from typing import Protocol

from chat_sync.application.dto.auth import AuthResult
from chat_sync.application.dto.snapshot import PrivateChatSnapshot
from chat_sync.domain.entities.conversation import GroupConversation
from chat_sync.domain.entities.identity import Identity
from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.ids import ChatId, UserId


class ChatApi(Protocol):
    async def login(self, username: str, password: str) -> AuthResult: ...
    async def signup(self, username: str, password: str) -> AuthResult: ...
    async def me(self, token: str) -> Identity: ...

    async def list_users(self, token: str) -> list[Identity]: ...

    async def start_private_chat(self, token: str, user_id: UserId) -> PrivateChatSnapshot: ...
    async def delete_private_chat(self, token: str, user_id: UserId) -> None: ...

    async def list_groups(self, token: str) -> list[GroupConversation]: ...
    async def create_group(self, token: str, name: str, member_ids: list[UserId]) -> GroupConversation: ...
    async def fetch_group_messages(self, token: str, chat_id: ChatId) -> list[Message]: ...
    async def fetch_group_members(self, token: str, chat_id: ChatId) -> list[str]: ...
