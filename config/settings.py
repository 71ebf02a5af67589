from __future__ import annotations

import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv


load_dotenv()


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    return int(raw) if raw and raw.strip() else None


class Settings:
    """Application settings loaded from environment variables (and `.env`)."""

    def __init__(self) -> None:
        self.openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
        self.chat_model: str = os.getenv("CHAT_MODEL", "gpt-4o-mini")
        self.chat_max_tokens: int = int(os.getenv("CHAT_MAX_TOKENS", "512"))
        self.chat_temperature: float = float(os.getenv("CHAT_TEMPERATURE", "0.7"))
        self.chat_timeout_seconds: float = float(os.getenv("CHAT_TIMEOUT_SECONDS", "30"))
        self.store_backend: str = os.getenv("STORE_BACKEND", "sqlite").strip().lower()
        self.database_dir: Optional[str] = os.getenv("DATABASE_DIR")
        self.database_reset: bool = _env_flag("DATABASE_RESET")
        self.session_retention_seconds: Optional[int] = _env_optional_int("SESSION_RETENTION_SECONDS")
        self.cors_allow_origins: List[str] = [
            origin.strip() for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if origin.strip()
        ]
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
