from __future__ import annotations

from chat_sync.application.dto.group import CreateGroupDTO
from chat_sync.application.exceptions import ValidationFailure


def assert_sendable_text(text: str | None) -> str:
    """Reject blank outbound text before anything touches the transport."""
    if text is None or not text.strip():
        raise ValidationFailure("Message text must not be empty")
    return text


def assert_group_request(dto: CreateGroupDTO) -> CreateGroupDTO:
    if not dto.name or not dto.name.strip():
        raise ValidationFailure("Group name is required")
    if not dto.member_ids:
        raise ValidationFailure("Select at least one member")
    return CreateGroupDTO(name=dto.name.strip(), member_ids=list(dto.member_ids))
