from __future__ import annotations

from dataclasses import dataclass

from chat_sync.domain.value_objects.ids import UserId


@dataclass(frozen=True, slots=True)
class Identity:
    """Authenticated user resolved from a bearer token."""

    id: UserId
    username: str
