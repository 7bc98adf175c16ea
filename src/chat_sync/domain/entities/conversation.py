from __future__ import annotations

from dataclasses import dataclass

from chat_sync.domain.entities.identity import Identity
from chat_sync.domain.value_objects.ids import ChatId


@dataclass(frozen=True, slots=True)
class PrivateConversation:
    chat_id: ChatId
    counterpart: Identity


@dataclass(frozen=True, slots=True)
class GroupConversation:
    chat_id: ChatId
    name: str


ConversationRef = PrivateConversation | GroupConversation
