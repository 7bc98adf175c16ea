from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from chat_sync.domain.entities.conversation import GroupConversation
from chat_sync.domain.entities.identity import Identity
from chat_sync.domain.value_objects.ids import ChatId, UserId
from chat_sync.infrastructure.socket.protocol import CanonicalId


class UserResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: CanonicalId = Field(validation_alias=AliasChoices("id", "_id", "userId"))
    username: str

    def to_domain(self) -> Identity:
        return Identity(id=UserId(self.id), username=self.username)


class AuthResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    token: str
    user: UserResponse


class PrivateChatResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    chat_id: CanonicalId = Field(validation_alias=AliasChoices("chatId", "id"))
    messages: list[Any] = []


class GroupResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: CanonicalId = Field(validation_alias=AliasChoices("id", "_id", "chatId"))
    name: str

    def to_domain(self) -> GroupConversation:
        return GroupConversation(chat_id=ChatId(self.id), name=self.name)


class CredentialsRequest(BaseModel):
    username: str
    password: str


class CreateGroupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    member_ids: list[str] = Field(alias="memberIds")
