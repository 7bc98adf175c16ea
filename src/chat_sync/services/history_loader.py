from __future__ import annotations

import logging

from chat_sync.application.dto.snapshot import HistorySnapshot
from chat_sync.application.exceptions import DecodeFailure, NetworkFailure
from chat_sync.application.ports.api import ChatApi
from chat_sync.domain.entities.conversation import (
    ConversationRef,
    GroupConversation,
    PrivateConversation,
)
from chat_sync.domain.entities.identity import Identity
from chat_sync.domain.value_objects.ids import ChatId

logger = logging.getLogger(__name__)


class HistoryLoader:
    """Fetches conversation snapshots; failures degrade to an empty history.

    AuthFailure is never swallowed here: the session has to sign out.
    """

    def __init__(self, api: ChatApi) -> None:
        self._api = api

    async def fetch(self, reference: ConversationRef, token: str) -> HistorySnapshot:
        try:
            if isinstance(reference, PrivateConversation):
                _, snapshot = await self.resolve_private(reference.counterpart, token)
                if snapshot.chat_id != reference.chat_id:
                    logger.warning(
                        "Private chat with %s resolved to %s, expected %s",
                        reference.counterpart.id, snapshot.chat_id, reference.chat_id,
                    )
                    return HistorySnapshot.empty(reference.chat_id, failed=True)
                return snapshot
            messages = await self._api.fetch_group_messages(token, reference.chat_id)
        except (NetworkFailure, DecodeFailure) as exc:
            logger.warning("History fetch for %s failed: %s", reference.chat_id, exc.detail)
            return HistorySnapshot.empty(reference.chat_id, failed=True)
        return HistorySnapshot(chat_id=reference.chat_id, messages=messages)

    async def resolve_private(
        self,
        counterpart: Identity,
        token: str,
    ) -> tuple[PrivateConversation, HistorySnapshot]:
        """Start or resume the private chat with ``counterpart``.

        Errors propagate: without a chat id there is nothing to fall back to.
        """
        result = await self._api.start_private_chat(token, counterpart.id)
        reference = PrivateConversation(chat_id=result.chat_id, counterpart=counterpart)
        return reference, HistorySnapshot(chat_id=result.chat_id, messages=list(result.messages))

    async def members(self, group: GroupConversation | ChatId, token: str) -> list[str]:
        chat_id = group.chat_id if isinstance(group, GroupConversation) else group
        try:
            return await self._api.fetch_group_members(token, chat_id)
        except (NetworkFailure, DecodeFailure) as exc:
            logger.warning("Member fetch for %s failed: %s", chat_id, exc.detail)
            return []
