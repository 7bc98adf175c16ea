from __future__ import annotations

from enum import StrEnum


class TransportEvent(StrEnum):
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    JOIN = "join"
    JOIN_CHAT = "joinChat"
    SEND_MESSAGE = "sendMessage"
    RECEIVE_MESSAGE = "receiveMessage"
