"""Session-scoped live transport over Socket.IO."""
from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Callable

import socketio

from chat_sync.application.exceptions import DecodeFailure, TransportDisconnect
from chat_sync.application.ports.transport import EventHandler
from chat_sync.config import settings
from chat_sync.domain.value_objects.enums import TransportEvent
from chat_sync.infrastructure.socket.protocol import decode_message, encode_payload

logger = logging.getLogger(__name__)

Decoder = Callable[[Any], Any]

DEFAULT_DECODERS: dict[str, Decoder] = {
    TransportEvent.RECEIVE_MESSAGE: decode_message,
}

_LIFECYCLE_EVENTS = frozenset({TransportEvent.CONNECT, TransportEvent.DISCONNECT})


class EventTransport:
    """Handler registry and inbound decode shared by transport implementations.

    Subclasses provide ``_send`` and call ``_dispatch`` for every inbound event.
    """

    def __init__(self, decoders: dict[str, Decoder] | None = None) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._decoders = dict(DEFAULT_DECODERS if decoders is None else decoders)

    @property
    def connected(self) -> bool:
        raise NotImplementedError

    def on(self, event: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event)
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            return
        if not handlers:
            del self._handlers[event]

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))

    def emit(self, event: str, payload: Any = None) -> None:
        self._send(event, encode_payload(payload))

    def _send(self, event: str, payload: Any) -> None:
        raise NotImplementedError

    def _dispatch(self, event: str, payload: Any = None) -> None:
        decoder = self._decoders.get(event)
        if decoder is not None:
            try:
                payload = decoder(payload)
            except DecodeFailure as exc:
                logger.warning("Dropping undecodable %s event: %s", event, exc.detail)
                return
        # Copy: handlers may deregister themselves while being called.
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler for %s failed", event)


class SocketIOTransport(EventTransport):
    """One Socket.IO connection per authenticated session.

    Emits are queued and written by a single background task, so callers never
    suspend and the server sees them in call order. Reconnection with backoff
    is delegated to the Socket.IO client; every (re)connect is re-dispatched as
    ``connect`` so room joins can be replayed.
    """

    def __init__(
        self,
        token: str,
        *,
        url: str | None = None,
        path: str | None = None,
        connect_timeout: int | None = None,
        client: socketio.AsyncClient | None = None,
    ) -> None:
        super().__init__()
        self._token = token
        self._url = url or settings.SOCKET_URL
        self._path = path or settings.SOCKET_PATH
        self._connect_timeout = connect_timeout or settings.SOCKET_CONNECT_TIMEOUT
        self._sio = client or socketio.AsyncClient(
            reconnection=True,
            reconnection_attempts=settings.RECONNECT_ATTEMPTS,
            reconnection_delay=settings.RECONNECT_DELAY_SECONDS,
            reconnection_delay_max=settings.RECONNECT_DELAY_MAX_SECONDS,
            logger=False,
            engineio_logger=False,
        )
        self._outbox: asyncio.Queue[tuple[str, Any]] = asyncio.Queue()
        self._writer: asyncio.Task[None] | None = None
        self._bound: set[str] = set()
        self._closed = False

        self._sio.on("connect", self._on_connect)
        self._sio.on("disconnect", self._on_disconnect)
        self._sio.on("connect_error", self._on_connect_error)

    @property
    def connected(self) -> bool:
        # The default namespace is registered before connect handlers run;
        # AsyncClient.connected only flips once connect() returns.
        return "/" in self._sio.namespaces

    @property
    def closed(self) -> bool:
        return self._closed

    def on(self, event: str, handler: EventHandler) -> None:
        super().on(event, handler)
        if event not in self._bound and event not in _LIFECYCLE_EVENTS:
            self._sio.on(event, functools.partial(self._relay, event))
            self._bound.add(event)

    async def open(self) -> None:
        if self._closed:
            raise TransportDisconnect("Transport has been closed")
        if not self._sio.connected:
            try:
                await self._sio.connect(
                    self._url,
                    auth={"token": self._token},
                    headers={"Authorization": f"Bearer {self._token}"},
                    socketio_path=self._path,
                    wait_timeout=self._connect_timeout,
                )
            except socketio.exceptions.ConnectionError as exc:
                raise TransportDisconnect(f"Could not connect to {self._url}: {exc}") from exc
            logger.info("Transport connected to %s", self._url)
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain(), name="chat-sync-transport-writer")

    async def close(self) -> None:
        self._closed = True
        if self._writer:
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
            self._writer = None
        if self._sio.connected:
            await self._sio.disconnect()
        self._handlers.clear()
        logger.info("Transport closed")

    def _send(self, event: str, payload: Any) -> None:
        if self._closed:
            logger.debug("Ignoring %s on closed transport", event)
            return
        self._outbox.put_nowait((event, payload))

    async def _drain(self) -> None:
        while True:
            event, payload = await self._outbox.get()
            if not self.connected:
                logger.warning("Dropping %s emitted while disconnected", event)
                continue
            try:
                await self._sio.emit(event, payload)
            except socketio.exceptions.SocketIOError:
                logger.warning("Emit of %s failed", event, exc_info=True)

    def _relay(self, event: str, *args: Any) -> None:
        self._dispatch(event, args[0] if args else None)

    def _on_connect(self) -> None:
        logger.info("Transport (re)connected")
        self._dispatch(TransportEvent.CONNECT)

    def _on_disconnect(self, *args: Any) -> None:
        reason = args[0] if args else None
        logger.warning("Transport disconnected (reason=%s)", reason)
        self._dispatch(TransportEvent.DISCONNECT, reason)

    def _on_connect_error(self, data: Any = None) -> None:
        logger.warning("Transport connect error: %s", data)
