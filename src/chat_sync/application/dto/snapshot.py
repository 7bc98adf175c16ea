from __future__ import annotations

from dataclasses import dataclass, field

from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.ids import ChatId


@dataclass(frozen=True, slots=True)
class PrivateChatSnapshot:
    """Result of the start-or-resume private chat call."""

    chat_id: ChatId
    messages: list[Message] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class HistorySnapshot:
    chat_id: ChatId
    messages: list[Message] = field(default_factory=list)
    failed: bool = False

    @classmethod
    def empty(cls, chat_id: ChatId, *, failed: bool = False) -> HistorySnapshot:
        return cls(chat_id=chat_id, messages=[], failed=failed)
