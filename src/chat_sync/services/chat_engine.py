"""Conversation lifecycle for one signed-in session."""
from __future__ import annotations

import logging
import uuid
from types import MappingProxyType
from typing import Awaitable, Mapping, TypeVar

from chat_sync.application.dto.group import CreateGroupDTO
from chat_sync.application.exceptions import AuthFailure, ValidationFailure
from chat_sync.application.policies.validation import assert_group_request
from chat_sync.application.ports.api import ChatApi
from chat_sync.application.ports.clock import Clock
from chat_sync.application.ports.transport import Transport
from chat_sync.config import settings
from chat_sync.domain.entities.conversation import (
    ConversationRef,
    GroupConversation,
    PrivateConversation,
)
from chat_sync.domain.entities.identity import Identity
from chat_sync.domain.value_objects.ids import ChatId, UserId
from chat_sync.services.dispatcher import OutboundDispatcher
from chat_sync.services.history_loader import HistoryLoader
from chat_sync.services.reconciler import ConversationState, MessageReconciler, UpdateListener
from chat_sync.services.session import SessionIdentityHolder
from chat_sync.services.subscriptions import RoomSubscriptionManager

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChatSyncEngine:
    """Opens, feeds and closes conversations over the session's transport.

    Open conversations are kept in a map keyed by chat id; any number may be
    open while one is "active" (foregrounded). Each open bumps a generation
    counter, and a snapshot that returns after a newer open has started is
    thrown away instead of being seeded.
    """

    def __init__(
        self,
        session: SessionIdentityHolder,
        transport: Transport,
        api: ChatApi,
        *,
        history: HistoryLoader | None = None,
        clock: Clock | None = None,
        dedup_window: float | None = None,
        leave_on_close: bool | None = None,
    ) -> None:
        if session.identity is None or session.token is None:
            raise AuthFailure("Not signed in")
        self._session = session
        self._identity = session.identity
        self._token = session.token
        self._transport = transport
        self._api = api
        self._history = history or HistoryLoader(api)
        self._clock = clock
        self._dedup_window = dedup_window
        self._leave_on_close = settings.LEAVE_ROOMS_ON_CLOSE if leave_on_close is None else leave_on_close

        self.subscriptions = RoomSubscriptionManager(transport)
        self._dispatcher = OutboundDispatcher(transport, self.subscriptions, self._identity)
        self._conversations: dict[ChatId, MessageReconciler] = {}
        self._members: dict[ChatId, list[str]] = {}
        self._active: ChatId | None = None
        self._generation = 0

    @classmethod
    async def start(
        cls,
        session: SessionIdentityHolder,
        api: ChatApi,
        *,
        history: HistoryLoader | None = None,
        clock: Clock | None = None,
        dedup_window: float | None = None,
        leave_on_close: bool | None = None,
    ) -> ChatSyncEngine:
        transport = await session.transport()
        return cls(
            session,
            transport,
            api,
            history=history,
            clock=clock,
            dedup_window=dedup_window,
            leave_on_close=leave_on_close,
        )

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def active_chat_id(self) -> ChatId | None:
        return self._active

    @property
    def conversations(self) -> Mapping[ChatId, ConversationState]:
        return MappingProxyType({cid: r.state for cid, r in self._conversations.items()})

    def get(self, chat_id: ChatId) -> ConversationState | None:
        reconciler = self._conversations.get(chat_id)
        return reconciler.state if reconciler else None

    # -- conversation lifecycle --

    async def open_group(
        self,
        group: GroupConversation,
        on_update: UpdateListener | None = None,
    ) -> ConversationState | None:
        """Open a group and return its state, or None if superseded mid-fetch."""
        generation = self._begin(group.chat_id)
        # The chat id is known up front, so join before fetching and let the
        # reconciler buffer anything that arrives while the snapshot loads.
        reconciler = self._mount(group, on_update)
        snapshot = await self._guard(self._history.fetch(group, self._token))
        if generation != self._generation:
            logger.info("Discarding stale snapshot for %s", group.chat_id)
            if self._conversations.get(group.chat_id) is reconciler:
                self._unmount(group.chat_id)
            return None
        reconciler.seed(snapshot.messages)
        return reconciler.state

    async def open_private(
        self,
        counterpart: Identity,
        on_update: UpdateListener | None = None,
    ) -> ConversationState | None:
        """Start or resume the private chat with ``counterpart``."""
        generation = self._begin(None)
        reference, snapshot = await self._guard(
            self._history.resolve_private(counterpart, self._token),
        )
        if generation != self._generation:
            logger.info("Discarding stale private snapshot for %s", reference.chat_id)
            return None
        self._active = reference.chat_id
        reconciler = self._mount(reference, on_update)
        reconciler.seed(snapshot.messages)
        return reconciler.state

    def close(self, chat_id: ChatId) -> None:
        """Navigate away from a conversation and discard its state."""
        if self._active == chat_id:
            self._active = None
            self._generation += 1
        self._unmount(chat_id)
        self._members.pop(chat_id, None)

    def close_all(self) -> None:
        for chat_id in list(self._conversations):
            self._unmount(chat_id)
        self._members.clear()
        self._active = None
        self._generation += 1
        self.subscriptions.detach()

    def send(self, chat_id: ChatId, text: str) -> uuid.UUID:
        reconciler = self._conversations.get(chat_id)
        if reconciler is None:
            raise ValidationFailure(f"Conversation {chat_id} is not open")
        return self._dispatcher.send(reconciler.state, text)

    # -- directory --

    async def list_contacts(self) -> list[Identity]:
        return await self._guard(self._api.list_users(self._token))

    async def list_groups(self) -> list[GroupConversation]:
        return await self._guard(self._api.list_groups(self._token))

    async def create_group(self, name: str, member_ids: list[UserId]) -> GroupConversation:
        dto = assert_group_request(CreateGroupDTO(name=name, member_ids=member_ids))
        return await self._guard(self._api.create_group(self._token, dto.name, dto.member_ids))

    async def delete_private_chat(self, counterpart: Identity) -> None:
        await self._guard(self._api.delete_private_chat(self._token, counterpart.id))
        for chat_id, reconciler in list(self._conversations.items()):
            reference = reconciler.state.reference
            if isinstance(reference, PrivateConversation) and reference.counterpart.id == counterpart.id:
                self.close(chat_id)
                self.subscriptions.leave(chat_id)

    # -- membership panel --

    async def open_members(self, chat_id: ChatId) -> list[str]:
        if chat_id not in self._members:
            self._members[chat_id] = await self._guard(self._history.members(chat_id, self._token))
        return list(self._members[chat_id])

    def close_members(self, chat_id: ChatId) -> None:
        self._members.pop(chat_id, None)

    # -- internals --

    def _begin(self, chat_id: ChatId | None) -> int:
        self._generation += 1
        self._active = chat_id
        return self._generation

    def _mount(self, reference: ConversationRef, on_update: UpdateListener | None) -> MessageReconciler:
        self._unmount(reference.chat_id)
        self.subscriptions.join(reference.chat_id)
        state = ConversationState(reference=reference, subscriptions=self.subscriptions)
        reconciler = MessageReconciler(
            state,
            self._transport,
            clock=self._clock,
            dedup_window=self._dedup_window,
            on_update=on_update,
        )
        reconciler.attach()
        self._conversations[reference.chat_id] = reconciler
        return reconciler

    def _unmount(self, chat_id: ChatId) -> None:
        reconciler = self._conversations.pop(chat_id, None)
        if reconciler is None:
            return
        reconciler.detach()
        if self._leave_on_close:
            self.subscriptions.leave(chat_id)

    async def _guard(self, call: Awaitable[T]) -> T:
        try:
            return await call
        except AuthFailure:
            logger.warning("Session rejected by server, signing out")
            self.close_all()
            await self._session.logout()
            raise
