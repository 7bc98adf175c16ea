"""Entrypoint: python -m chat_sync <group-id>"""
from __future__ import annotations

import asyncio
import logging
import os
import sys

from chat_sync.application.exceptions import ChatSyncError, ValidationFailure
from chat_sync.config import settings
from chat_sync.domain.entities.conversation import GroupConversation
from chat_sync.domain.entities.identity import Identity
from chat_sync.domain.value_objects.ids import ChatId, normalize_id
from chat_sync.infrastructure.http.api_client import HttpChatApi
from chat_sync.infrastructure.socket.transport import SocketIOTransport
from chat_sync.infrastructure.storage.token_store import FileTokenStore
from chat_sync.services.chat_engine import ChatSyncEngine
from chat_sync.services.reconciler import ConversationState
from chat_sync.services.session import SessionIdentityHolder

logger = logging.getLogger(__name__)


def _printer(me: Identity):
    # Keyed by object identity: seq-ordered inserts can land mid-list.
    printed: set[int] = set()

    def on_update(state: ConversationState) -> None:
        for message in state.messages:
            if id(message) in printed:
                continue
            printed.add(id(message))
            author = "me" if message.sender_id == me.id else (message.sender_name or message.sender_id)
            print(f"[{author}] {message.text}", flush=True)

    return on_update


async def run(group_id: str) -> int:
    api = HttpChatApi()
    session = SessionIdentityHolder(
        api,
        FileTokenStore(),
        lambda _identity, token: SocketIOTransport(token),
    )
    try:
        identity = await session.restore()
        if identity is None:
            username = os.environ.get("CHAT_SYNC_USERNAME")
            password = os.environ.get("CHAT_SYNC_PASSWORD")
            if not username or not password:
                logger.error("Not signed in; set CHAT_SYNC_USERNAME and CHAT_SYNC_PASSWORD")
                return 1
            identity = await session.login(username, password)

        engine = await ChatSyncEngine.start(session, api)
        chat_id = ChatId(normalize_id(group_id))
        groups = {g.chat_id: g for g in await engine.list_groups()}
        group = groups.get(chat_id, GroupConversation(chat_id=chat_id, name=group_id))
        await engine.open_group(group, on_update=_printer(identity))
        logger.info("Chatting in %s as %s", group.name, identity.username)

        loop = asyncio.get_running_loop()
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            try:
                engine.send(chat_id, line.rstrip("\n"))
            except ValidationFailure:
                continue
        engine.close_all()
        return 0
    except ChatSyncError as exc:
        logger.error("%s: %s", type(exc).__name__, exc.detail)
        return 1
    finally:
        await session.disconnect()
        await api.aclose()


def main() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if len(sys.argv) != 2:
        print("usage: python -m chat_sync <group-id>", file=sys.stderr)
        raise SystemExit(2)
    raise SystemExit(asyncio.run(run(sys.argv[1])))


if __name__ == "__main__":
    main()
