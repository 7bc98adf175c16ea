from __future__ import annotations


class ChatSyncError(Exception):
    """Base chat sync error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class AuthFailure(ChatSyncError):
    """Token rejected or expired; the session must sign out."""


class NetworkFailure(ChatSyncError):
    """REST call rejected or the server could not be reached."""

    def __init__(self, detail: str = "", status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(detail)


class TransportDisconnect(ChatSyncError):
    pass


class ValidationFailure(ChatSyncError):
    pass


class DecodeFailure(ChatSyncError):
    """Server response could not be decoded into the expected shape."""
