"""Note Manager configuration loaded from environment variables."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings


class SaveMode(str, Enum):
    """How ``NotesStore.save`` combines live notes with stored ones."""

    MERGE = "merge"
    REPLACE = "replace"


class Settings(BaseSettings):
    """Application settings loaded from .env file (``NOTES_`` prefix)."""

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "NOTES_",
        "extra": "ignore",
    }

    # Persistence
    storage_backend: Literal["file", "redis"] = "file"
    data_dir: Path = Path("data")
    collection_key: str = "notesData"
    save_mode: SaveMode = SaveMode.MERGE
    io_timeout: float = 10.0
    autoload: bool = True

    # Redis
    redis_url: str = "redis://localhost:6379"
    redis_prefix: str = "notes:"

    # Servers
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    mcp_port: int = 8001

    log_level: str = "INFO"


settings = Settings()
