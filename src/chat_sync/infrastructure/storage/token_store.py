from __future__ import annotations

import logging
from pathlib import Path

from chat_sync.config import settings

logger = logging.getLogger(__name__)


class FileTokenStore:
    """Keeps the single bearer token in a user-private file."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or settings.TOKEN_FILE

    def load(self) -> str | None:
        if not self._path.exists():
            return None
        token = self._path.read_text().strip()
        return token or None

    def save(self, token: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(token)
        self._path.chmod(0o600)
        logger.debug("Token stored at %s", self._path)

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
