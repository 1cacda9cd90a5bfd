from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv


load_dotenv()


def _optional_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value in (None, ""):
        return None
    return float(value)


class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here.
    """

    app_env: str = os.getenv("APP_ENV", "development")
    gemini_api_key: Optional[str] = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash-lite")
    gemini_api_base: str = os.getenv(
        "GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta"
    )
    upstream_backend: str = os.getenv("UPSTREAM_BACKEND", "rest")
    upstream_timeout: Optional[float] = _optional_float("UPSTREAM_TIMEOUT")
    daily_limit: int = int(os.getenv("DAILY_LIMIT", "50"))
    max_output_tokens: int = int(os.getenv("MAX_OUTPUT_TOKENS", "1300"))
    max_tracked_users: int = int(os.getenv("MAX_TRACKED_USERS", "10000"))
    max_sessions: int = int(os.getenv("MAX_SESSIONS", "10000"))
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "3000"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
