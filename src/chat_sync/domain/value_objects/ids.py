from __future__ import annotations

from typing import Any, NewType

ChatId = NewType("ChatId", str)
UserId = NewType("UserId", str)
MessageId = NewType("MessageId", str)


def normalize_id(raw: Any) -> str:
    """Return the canonical string form of a chat/user/message identifier.

    REST and socket payloads do not agree on whether ids are numbers or
    strings, so every id is folded to ``str`` before it is compared.
    """
    if isinstance(raw, bool):
        raise ValueError("boolean is not a valid identifier")
    if isinstance(raw, int):
        return str(raw)
    if isinstance(raw, float):
        if not raw.is_integer():
            raise ValueError(f"non-integral numeric identifier: {raw!r}")
        return str(int(raw))
    if isinstance(raw, str):
        value = raw.strip()
        if not value:
            raise ValueError("identifier must not be empty")
        return value
    raise ValueError(f"unsupported identifier type: {type(raw).__name__}")
