from __future__ import annotations

from dataclasses import dataclass, field

from chat_sync.domain.value_objects.ids import UserId


@dataclass(frozen=True, slots=True)
class CreateGroupDTO:
    name: str
    member_ids: list[UserId] = field(default_factory=list)
