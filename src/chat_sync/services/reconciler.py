"""Per-conversation merge of the history snapshot with live events."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable
from uuid import UUID

from chat_sync.application.ports.clock import Clock, SystemClock
from chat_sync.application.ports.transport import Transport
from chat_sync.config import settings
from chat_sync.domain.entities.conversation import ConversationRef
from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.enums import TransportEvent
from chat_sync.domain.value_objects.ids import ChatId, MessageId, UserId
from chat_sync.services.subscriptions import RoomSubscriptionManager

logger = logging.getLogger(__name__)


@dataclass
class ConversationState:
    reference: ConversationRef
    subscriptions: RoomSubscriptionManager = field(repr=False)
    messages: list[Message] = field(default_factory=list)

    @property
    def chat_id(self) -> ChatId:
        return self.reference.chat_id

    @property
    def subscribed(self) -> bool:
        return self.subscriptions.is_joined(self.chat_id)


UpdateListener = Callable[[ConversationState], None]


class MessageReconciler:
    """Keeps one conversation's message sequence ordered and free of repeats.

    Live events that arrive before the snapshot is seeded are buffered and
    merged after it. Duplicates are recognised by server message id, sequence
    number or client correlation id. Events that carry none of those are
    matched on sender and text within ``dedup_window`` seconds.
    """

    def __init__(
        self,
        state: ConversationState,
        transport: Transport,
        *,
        clock: Clock | None = None,
        dedup_window: float | None = None,
        on_update: UpdateListener | None = None,
    ) -> None:
        self.state = state
        self._transport = transport
        self._clock = clock or SystemClock()
        self._dedup_window = settings.DEDUP_WINDOW_SECONDS if dedup_window is None else dedup_window
        self._listeners: list[UpdateListener] = [on_update] if on_update else []
        self._attached = False
        self._seeded = False
        self._pending: list[Message] = []
        self._message_ids: set[MessageId] = set()
        self._seqs: set[int] = set()
        self._client_ids: set[UUID] = set()
        self._recent: dict[tuple[UserId | None, str], float] = {}

    def add_listener(self, listener: UpdateListener) -> None:
        self._listeners.append(listener)

    def attach(self) -> None:
        if self._attached:
            return
        self._transport.on(TransportEvent.RECEIVE_MESSAGE, self._on_message)
        self._attached = True

    def detach(self) -> None:
        if not self._attached:
            return
        self._transport.off(TransportEvent.RECEIVE_MESSAGE, self._on_message)
        self._attached = False
        self._pending.clear()

    def seed(self, snapshot: Iterable[Message]) -> None:
        """Replace the sequence with the snapshot, then merge buffered live events."""
        self.state.messages = []
        self._message_ids.clear()
        self._seqs.clear()
        self._client_ids.clear()
        for message in snapshot:
            self._remember(message)
            self.state.messages.append(message)
        self._seeded = True

        pending, self._pending = self._pending, []
        for message in pending:
            if self._overlaps_snapshot(message, len(pending)):
                logger.debug("Buffered message already in snapshot for %s", self.state.chat_id)
                continue
            self._insert(message)
        self._notify()

    def _on_message(self, message: Message) -> None:
        if message.chat_id != self.state.chat_id:
            return
        if not self.state.subscribed:
            logger.debug("Dropping message for %s: room not joined", message.chat_id)
            return
        if not self._seeded:
            self._pending.append(message)
            return
        if self._insert(message):
            self._notify()

    def _insert(self, message: Message) -> bool:
        if self._is_duplicate(message):
            logger.debug("Duplicate message ignored in %s", self.state.chat_id)
            return False
        self._remember(message)
        messages = self.state.messages
        if message.seq is None:
            messages.append(message)
            return True
        index = len(messages)
        while index > 0:
            previous = messages[index - 1].seq
            if previous is None or previous <= message.seq:
                break
            index -= 1
        messages.insert(index, message)
        return True

    def _is_duplicate(self, message: Message) -> bool:
        if message.message_id is not None and message.message_id in self._message_ids:
            return True
        if message.seq is not None and message.seq in self._seqs:
            return True
        if message.client_msg_id is not None and message.client_msg_id in self._client_ids:
            return True
        if _is_anonymous(message) and self._dedup_window > 0:
            seen_at = self._recent.get((message.sender_id, message.text))
            if seen_at is not None and self._clock.monotonic() - seen_at < self._dedup_window:
                return True
        return False

    def _overlaps_snapshot(self, message: Message, tail: int) -> bool:
        """True if an id-less buffered event is already among the snapshot's last entries."""
        if not _is_anonymous(message):
            return self._is_duplicate(message)
        return any(
            m.sender_id == message.sender_id and m.text == message.text
            for m in self.state.messages[-tail:]
        )

    def _remember(self, message: Message) -> None:
        if message.message_id is not None:
            self._message_ids.add(message.message_id)
        if message.seq is not None:
            self._seqs.add(message.seq)
        if message.client_msg_id is not None:
            self._client_ids.add(message.client_msg_id)
        if _is_anonymous(message) and self._seeded and self._dedup_window > 0:
            now = self._clock.monotonic()
            self._recent = {
                key: seen_at
                for key, seen_at in self._recent.items()
                if now - seen_at < self._dedup_window
            }
            self._recent[(message.sender_id, message.text)] = now

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.state)


def _is_anonymous(message: Message) -> bool:
    return message.message_id is None and message.seq is None and message.client_msg_id is None
