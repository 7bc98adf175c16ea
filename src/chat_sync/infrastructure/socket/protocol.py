"""Socket.IO payload models and the encode/decode boundary."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, Any, Iterable
from uuid import UUID

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from chat_sync.application.exceptions import DecodeFailure
from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.ids import ChatId, MessageId, UserId, normalize_id

logger = logging.getLogger(__name__)

CanonicalId = Annotated[str, BeforeValidator(normalize_id)]


class MessagePayload(BaseModel):
    """Server → Client (``receiveMessage`` and REST history items)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    chat_id: CanonicalId = Field(alias="chatId")
    sender_id: CanonicalId | None = Field(default=None, alias="senderId")
    text: str
    sender_name: str | None = Field(
        default=None, validation_alias=AliasChoices("senderName", "user"),
    )
    message_id: CanonicalId | None = Field(
        default=None, validation_alias=AliasChoices("id", "messageId"),
    )
    seq: int | None = None
    client_msg_id: UUID | None = Field(default=None, alias="clientMsgId")
    created_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("createdAt", "timestamp"),
    )

    def to_domain(self) -> Message:
        return Message(
            chat_id=ChatId(self.chat_id),
            sender_id=UserId(self.sender_id) if self.sender_id is not None else None,
            text=self.text,
            sender_name=self.sender_name,
            message_id=MessageId(self.message_id) if self.message_id is not None else None,
            seq=self.seq,
            client_msg_id=self.client_msg_id,
            created_at=self.created_at,
        )


class SendMessagePayload(BaseModel):
    """Client → Server (``sendMessage``)."""

    model_config = ConfigDict(populate_by_name=True)

    chat_id: CanonicalId = Field(alias="chatId")
    sender_id: CanonicalId = Field(alias="senderId")
    text: str
    client_msg_id: UUID | None = Field(default=None, alias="clientMsgId")

    @classmethod
    def from_domain(cls, message: Message) -> SendMessagePayload:
        return cls(
            chat_id=message.chat_id,
            sender_id=message.sender_id,
            text=message.text,
            client_msg_id=message.client_msg_id,
        )


def encode_payload(payload: Any) -> Any:
    if isinstance(payload, Message):
        payload = SendMessagePayload.from_domain(payload)
    if isinstance(payload, BaseModel):
        return payload.model_dump(by_alias=True, mode="json", exclude_none=True)
    return payload


def decode_message(raw: Any, *, default_chat_id: str | None = None) -> Message:
    if not isinstance(raw, dict):
        raise DecodeFailure(f"expected message object, got {type(raw).__name__}")
    if default_chat_id is not None and "chatId" not in raw and "chat_id" not in raw:
        raw = {**raw, "chatId": default_chat_id}
    try:
        return MessagePayload.model_validate(raw).to_domain()
    except PydanticValidationError as exc:
        raise DecodeFailure(str(exc)) from exc


def decode_messages(items: Iterable[Any], *, default_chat_id: str | None = None) -> list[Message]:
    """Decode a history list, skipping entries that cannot be read."""
    messages: list[Message] = []
    for item in items:
        try:
            messages.append(decode_message(item, default_chat_id=default_chat_id))
        except DecodeFailure as exc:
            logger.warning("Skipping undecodable history message: %s", exc.detail)
    return messages
