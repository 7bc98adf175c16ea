from __future__ import annotations

from typing import Any, Callable, Protocol

EventHandler = Callable[[Any], None]


class Transport(Protocol):
    @property
    def connected(self) -> bool: ...

    def emit(self, event: str, payload: Any = None) -> None: ...
    def on(self, event: str, handler: EventHandler) -> None: ...
    def off(self, event: str, handler: EventHandler) -> None: ...

    async def open(self) -> None: ...
    async def close(self) -> None: ...
