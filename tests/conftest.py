"""Shared test fixtures."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest

from chat_sync.application.dto.auth import AuthResult
from chat_sync.application.dto.snapshot import PrivateChatSnapshot
from chat_sync.application.exceptions import AuthFailure
from chat_sync.domain.entities.conversation import GroupConversation
from chat_sync.domain.entities.identity import Identity
from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.enums import TransportEvent
from chat_sync.domain.value_objects.ids import ChatId, UserId
from chat_sync.infrastructure.socket.transport import EventTransport
from chat_sync.services.session import SessionIdentityHolder

ALICE = Identity(id=UserId("1"), username="alice")
BOB = Identity(id=UserId("2"), username="bob")


@pytest.fixture
def alice() -> Identity:
    return ALICE


@pytest.fixture
def bob() -> Identity:
    return BOB


def make_message(
    chat_id: str = "1",
    text: str = "hello",
    *,
    sender_id: str | None = "2",
    **kwargs: Any,
) -> Message:
    return Message(
        chat_id=ChatId(chat_id),
        sender_id=UserId(sender_id) if sender_id is not None else None,
        text=text,
        **kwargs,
    )


@dataclass
class ManualClock:
    now: float = 1000.0

    def monotonic(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport(EventTransport):
    """In-memory transport; records emits and lets tests inject events."""

    def __init__(self, server: FakeChatServer | None = None, *, connected: bool = True) -> None:
        super().__init__()
        self._connected = connected
        self.server = server
        self.emitted: list[tuple[str, Any]] = []
        self.opened = 0
        self.closed = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def open(self) -> None:
        self.opened += 1
        if not self._connected:
            self.reconnect()

    async def close(self) -> None:
        self.closed = True
        self._connected = False

    def _send(self, event: str, payload: Any) -> None:
        self.emitted.append((event, payload))
        if self.server is not None and self._connected:
            self.server.handle(self, event, payload)

    def deliver(self, event: str, payload: Any = None) -> None:
        self._dispatch(event, payload)

    def drop(self) -> None:
        self._connected = False
        if self.server is not None:
            self.server.forget(self)
        self._dispatch(TransportEvent.DISCONNECT, "transport close")

    def reconnect(self) -> None:
        self._connected = True
        self._dispatch(TransportEvent.CONNECT)

    def emitted_events(self, event: str) -> list[Any]:
        return [payload for name, payload in self.emitted if name == event]


@dataclass
class FakeChatServer:
    """Socket.IO server stand-in: rooms are per connection and echo to everyone."""

    rooms: dict[str, list[FakeTransport]] = field(default_factory=dict)

    def handle(self, transport: FakeTransport, event: str, payload: Any) -> None:
        if event in (TransportEvent.JOIN_CHAT, TransportEvent.JOIN):
            members = self.rooms.setdefault(str(payload), [])
            if transport not in members:
                members.append(transport)
        elif event == TransportEvent.SEND_MESSAGE:
            for member in list(self.rooms.get(str(payload["chatId"]), [])):
                member.deliver(TransportEvent.RECEIVE_MESSAGE, dict(payload))

    def forget(self, transport: FakeTransport) -> None:
        for members in self.rooms.values():
            if transport in members:
                members.remove(transport)


@dataclass
class MemoryTokenStore:
    token: str | None = None

    def load(self) -> str | None:
        return self.token

    def save(self, token: str) -> None:
        self.token = token

    def clear(self) -> None:
        self.token = None


@dataclass
class FakeChatApi:
    users: dict[str, Identity] = field(default_factory=dict)
    passwords: dict[str, str] = field(default_factory=dict)
    groups: list[GroupConversation] = field(default_factory=list)
    group_messages: dict[str, list[Message]] = field(default_factory=dict)
    members: dict[str, list[str]] = field(default_factory=dict)
    private_chats: dict[str, PrivateChatSnapshot] = field(default_factory=dict)
    failures: dict[str, Exception] = field(default_factory=dict)
    gates: dict[str, asyncio.Event] = field(default_factory=dict)
    calls: list[tuple[str, Any]] = field(default_factory=list)

    def _record(self, name: str, arg: Any = None) -> None:
        self.calls.append((name, arg))
        if name in self.failures:
            raise self.failures[name]

    async def _wait(self, key: str) -> None:
        gate = self.gates.get(key)
        if gate is not None:
            await gate.wait()

    async def login(self, username: str, password: str) -> AuthResult:
        self._record("login", username)
        if self.passwords.get(username) != password:
            raise AuthFailure("Invalid credentials")
        identity = next(u for u in self.users.values() if u.username == username)
        token = next(t for t, u in self.users.items() if u == identity)
        return AuthResult(token=token, identity=identity)

    async def signup(self, username: str, password: str) -> AuthResult:
        self._record("signup", username)
        identity = Identity(id=UserId(str(len(self.users) + 100)), username=username)
        token = f"token-{username}"
        self.users[token] = identity
        self.passwords[username] = password
        return AuthResult(token=token, identity=identity)

    async def me(self, token: str) -> Identity:
        self._record("me", token)
        if token not in self.users:
            raise AuthFailure("Invalid token")
        return self.users[token]

    async def list_users(self, token: str) -> list[Identity]:
        self._record("list_users")
        me = self.users.get(token)
        return [u for u in self.users.values() if u != me]

    async def start_private_chat(self, token: str, user_id: UserId) -> PrivateChatSnapshot:
        self._record("start_private_chat", user_id)
        await self._wait(f"private:{user_id}")
        return self.private_chats[user_id]

    async def delete_private_chat(self, token: str, user_id: UserId) -> None:
        self._record("delete_private_chat", user_id)
        self.private_chats.pop(user_id, None)

    async def list_groups(self, token: str) -> list[GroupConversation]:
        self._record("list_groups")
        return list(self.groups)

    async def create_group(self, token: str, name: str, member_ids: list[UserId]) -> GroupConversation:
        self._record("create_group", (name, tuple(member_ids)))
        group = GroupConversation(chat_id=ChatId(f"g{len(self.groups) + 1}"), name=name)
        self.groups.append(group)
        return group

    async def fetch_group_messages(self, token: str, chat_id: ChatId) -> list[Message]:
        self._record("fetch_group_messages", chat_id)
        await self._wait(f"group:{chat_id}")
        return list(self.group_messages.get(chat_id, []))

    async def fetch_group_members(self, token: str, chat_id: ChatId) -> list[str]:
        self._record("fetch_group_members", chat_id)
        return list(self.members.get(chat_id, []))


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def api(alice, bob) -> FakeChatApi:
    return FakeChatApi(
        users={"token-alice": alice, "token-bob": bob},
        passwords={"alice": "pw-alice", "bob": "pw-bob"},
    )


@pytest.fixture
def token_store() -> MemoryTokenStore:
    return MemoryTokenStore()


@dataclass
class TransportFactory:
    server: FakeChatServer | None = None
    created: list[FakeTransport] = field(default_factory=list)

    def __call__(self, identity: Identity, token: str) -> FakeTransport:
        transport = FakeTransport(self.server)
        self.created.append(transport)
        return transport


@pytest.fixture
def transport_factory() -> TransportFactory:
    return TransportFactory()


@pytest.fixture
def session(api, token_store, transport_factory) -> SessionIdentityHolder:
    return SessionIdentityHolder(api, token_store, transport_factory)
