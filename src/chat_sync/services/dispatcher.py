from __future__ import annotations

import logging
import uuid

from chat_sync.application.policies.validation import assert_sendable_text
from chat_sync.application.ports.transport import Transport
from chat_sync.domain.entities.identity import Identity
from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.enums import TransportEvent
from chat_sync.services.reconciler import ConversationState
from chat_sync.services.subscriptions import RoomSubscriptionManager

logger = logging.getLogger(__name__)


class OutboundDispatcher:
    def __init__(
        self,
        transport: Transport,
        subscriptions: RoomSubscriptionManager,
        identity: Identity,
    ) -> None:
        self._transport = transport
        self._subscriptions = subscriptions
        self._identity = identity

    def send(self, state: ConversationState, text: str) -> uuid.UUID:
        """Emit a message for ``state`` and return its client correlation id.

        Nothing is appended locally; the message comes back through the
        server's echo. The room is joined first if it is not, so the echo
        reaches us.
        """
        assert_sendable_text(text)
        if not state.subscribed:
            logger.info("Joining %s before sending", state.chat_id)
            self._subscriptions.join(state.chat_id)

        client_msg_id = uuid.uuid4()
        message = Message(
            chat_id=state.chat_id,
            sender_id=self._identity.id,
            text=text,
            client_msg_id=client_msg_id,
        )
        self._transport.emit(TransportEvent.SEND_MESSAGE, message)
        return client_msg_id
