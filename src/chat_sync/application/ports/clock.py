from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    def monotonic(self) -> float: ...


class SystemClock:
    """Default monotonic clock implementation."""

    def monotonic(self) -> float:
        return time.monotonic()
