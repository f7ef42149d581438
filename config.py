"""Configuration management."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off", ""}


class Config:
    """Application configuration."""

    # Storage
    APP_DIR = Path(os.getenv("BOOKLOG_HOME", str(Path.home() / ".booklog")))
    DB_PATH = Path(os.getenv("BOOKLOG_DB", str(APP_DIR / "booklog.db")))
    COVERS_DIR = APP_DIR / "covers"
    STORAGE_KEY = os.getenv("BOOKLOG_STORAGE_KEY", "booklog_v1")

    # Covers
    COVER_BASE_URL = os.getenv(
        "BOOKLOG_COVER_BASE_URL", "https://covers.openlibrary.org/b/isbn"
    ).rstrip("/")
    COVER_TIMEOUT = int(os.getenv("BOOKLOG_COVER_TIMEOUT", "15"))

    # UI
    TOAST_MS = int(os.getenv("BOOKLOG_TOAST_MS", "1600"))
    CELEBRATION_MS = int(os.getenv("BOOKLOG_CELEBRATION_MS", "1200"))
    CONFETTI_PIECES = int(os.getenv("BOOKLOG_CONFETTI_PIECES", "120"))
    SOUND_ENABLED = _flag("BOOKLOG_SOUND", True)

    LOG_LEVEL = os.getenv("BOOKLOG_LOG_LEVEL", "INFO").upper()
