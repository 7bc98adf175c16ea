from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_BASE_URL: str = "http://localhost:8000"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    SOCKET_URL: str = "http://localhost:8000"
    SOCKET_PATH: str = "socket.io"
    SOCKET_CONNECT_TIMEOUT: int = 5

    RECONNECT_ATTEMPTS: int = 0  # 0 = retry forever
    RECONNECT_DELAY_SECONDS: float = 1.0
    RECONNECT_DELAY_MAX_SECONDS: float = 5.0

    JOIN_EVENT: Literal["joinChat", "join"] = "joinChat"
    LEAVE_ROOMS_ON_CLOSE: bool = False

    DEDUP_WINDOW_SECONDS: float = 2.0

    TOKEN_FILE: Path = Path.home() / ".chat_sync" / "token"

    LOG_LEVEL: str = "INFO"

    @property
    def api_url(self) -> str:
        return f"{self.API_BASE_URL.rstrip('/')}/api"

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
