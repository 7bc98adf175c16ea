from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from chat_sync.domain.value_objects.ids import ChatId, MessageId, UserId


@dataclass(frozen=True, slots=True)
class Message:
    chat_id: ChatId
    sender_id: UserId | None
    text: str
    sender_name: str | None = None
    message_id: MessageId | None = None
    seq: int | None = None
    client_msg_id: UUID | None = None
    created_at: datetime | None = None
