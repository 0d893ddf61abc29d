"""
MeetAI Assistant — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (one level up from meetai/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # LLM, provider-agnostic (gemini, anthropic, openai, cohere)
    LLM_PROVIDER: str = "gemini"
    LLM_MODEL: str = ""          # empty means the per-provider default
    LLM_API_KEY: str
    LLM_MAX_TOKENS: int = 1024

    # WeatherAPI.com (optional: weather and place search tools)
    WEATHERAPI_KEY: str = ""

    # Gemini key for /avatar; empty falls back to LLM_API_KEY when LLM_PROVIDER is gemini
    AVATAR_API_KEY: str = ""

    # SQLite key/value area, one namespace per chat
    DATABASE_PATH: str = "data/meetai.db"

    # Security: an empty list lets every Telegram user in
    ALLOWED_USER_IDS: list[int] = []

    # Display timezone for meeting summaries
    TIMEZONE: str = "UTC"

    # Assistant behaviour
    CHAT_HISTORY_TURNS: int = 10
    ASSISTANT_MAX_TOOL_ROUNDS: int = 4
    OPEN_AI_MODE: bool = True

    # Credentials
    BCRYPT_ROUNDS: int = 12

    # New-account defaults
    DEFAULT_LOCATION: str = "New York, USA"
    DEFAULT_WORK_START: str = "09:00"
    DEFAULT_WORK_END: str = "17:00"

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator("OPEN_AI_MODE", mode="before")
    @classmethod
    def parse_bool(cls, v: str | bool) -> bool:
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() in ("1", "true", "yes", "on")


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")
    llm_api_key = os.getenv("LLM_API_KEY", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    if not llm_api_key or llm_api_key.startswith("your-"):
        print("ERROR: LLM_API_KEY is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        LLM_PROVIDER=os.getenv("LLM_PROVIDER", "gemini"),
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        LLM_API_KEY=llm_api_key,
        LLM_MAX_TOKENS=os.getenv("LLM_MAX_TOKENS", "1024"),
        WEATHERAPI_KEY=os.getenv("WEATHERAPI_KEY", ""),
        AVATAR_API_KEY=os.getenv("AVATAR_API_KEY", ""),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/meetai.db"),
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        TIMEZONE=os.getenv("TIMEZONE", "UTC"),
        CHAT_HISTORY_TURNS=os.getenv("CHAT_HISTORY_TURNS", "10"),
        ASSISTANT_MAX_TOOL_ROUNDS=os.getenv("ASSISTANT_MAX_TOOL_ROUNDS", "4"),
        OPEN_AI_MODE=os.getenv("OPEN_AI_MODE", "true"),
        BCRYPT_ROUNDS=os.getenv("BCRYPT_ROUNDS", "12"),
        DEFAULT_LOCATION=os.getenv("DEFAULT_LOCATION", "New York, USA"),
        DEFAULT_WORK_START=os.getenv("DEFAULT_WORK_START", "09:00"),
        DEFAULT_WORK_END=os.getenv("DEFAULT_WORK_END", "17:00"),
    )


# Singleton, imported by all other modules as:
#   from meetai.config import settings
settings = _load_settings()
