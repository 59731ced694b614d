"""
Habit Tracker — Centralized configuration.

Loads all settings from .env and validates required keys.
Imported as a singleton: `from habit_tracker.config import settings`.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (one level up from habit_tracker/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # SQLite
    DATABASE_PATH: str = "data/habits.db"
    STORAGE_TIMEOUT_SECONDS: float = 5.0

    # Security: an empty list means anyone may register
    ALLOWED_USER_IDS: list[int] = []

    # Daily check-in reminder
    REMINDER_HOUR: int = 9
    TIMEZONE: str = "UTC"

    LOG_LEVEL: str = "INFO"

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator("REMINDER_HOUR", mode="before")
    @classmethod
    def parse_hour(cls, v: str | int) -> int:
        hour = int(v)
        if not 0 <= hour <= 23:
            raise ValueError(f"REMINDER_HOUR must be 0-23, got {hour}")
        return hour

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def parse_log_level(cls, v: str) -> str:
        return str(v).strip().upper() or "INFO"


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/habits.db"),
        STORAGE_TIMEOUT_SECONDS=os.getenv("STORAGE_TIMEOUT_SECONDS", "5.0"),
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        REMINDER_HOUR=os.getenv("REMINDER_HOUR", "9"),
        TIMEZONE=os.getenv("TIMEZONE", "UTC"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
    )


# Singleton — imported by all other modules as:
#   from habit_tracker.config import settings
settings = _load_settings()
