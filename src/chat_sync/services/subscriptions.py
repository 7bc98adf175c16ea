"""Client-side room subscription bookkeeping."""
from __future__ import annotations

import logging
from typing import Any

from chat_sync.application.ports.transport import Transport
from chat_sync.config import settings
from chat_sync.domain.value_objects.enums import TransportEvent
from chat_sync.domain.value_objects.ids import ChatId

logger = logging.getLogger(__name__)


class RoomSubscriptionManager:
    """Tracks the chat rooms the live transport is believed to be joined to.

    The server forgets room membership whenever the connection drops, so every
    ``connect`` re-issues a join for each tracked room. Joins requested while
    disconnected are only recorded and go out on the next ``connect``.
    """

    def __init__(self, transport: Transport, *, join_event: str | None = None) -> None:
        self._transport = transport
        self._join_event = join_event or settings.JOIN_EVENT
        self._joined: dict[ChatId, None] = {}
        self._transport.on(TransportEvent.CONNECT, self._on_connect)

    @property
    def joined(self) -> tuple[ChatId, ...]:
        return tuple(self._joined)

    def is_joined(self, chat_id: ChatId) -> bool:
        return chat_id in self._joined

    def join(self, chat_id: ChatId) -> bool:
        """Join a room once. Returns False if it was already joined."""
        if chat_id in self._joined:
            return False
        self._joined[chat_id] = None
        if self._transport.connected:
            self._transport.emit(self._join_event, chat_id)
        logger.debug("Joined room %s", chat_id)
        return True

    def leave(self, chat_id: ChatId) -> bool:
        if chat_id not in self._joined:
            return False
        del self._joined[chat_id]
        logger.debug("Left room %s", chat_id)
        return True

    def detach(self) -> None:
        self._transport.off(TransportEvent.CONNECT, self._on_connect)
        self._joined.clear()

    def _on_connect(self, _payload: Any = None) -> None:
        if not self._joined:
            return
        logger.info("Re-joining %d room(s) after connect", len(self._joined))
        for chat_id in self._joined:
            self._transport.emit(self._join_event, chat_id)
