from __future__ import annotations

from dataclasses import dataclass

from chat_sync.domain.entities.identity import Identity


@dataclass(frozen=True, slots=True)
class AuthResult:
    token: str
    identity: Identity
