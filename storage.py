from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Iterable, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from config import Config
from inventory import STATUSES, BookRecord, record_to_dict

logger = logging.getLogger(__name__)


class StoragePort(Protocol):
    def load(self) -> List[BookRecord]:
        ...

    def save(self, books: Iterable[BookRecord]) -> bool:
        ...


# -----------------------------------------------------------------------------
# Blob schema
# -----------------------------------------------------------------------------


class StoredBook(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1)
    title: str
    author: str
    genre: str
    status: str
    isbn: str = ""
    rating: Optional[int] = Field(default=0, ge=0, le=5)
    created_at: int = Field(..., alias="createdAt")

    def to_record(self) -> BookRecord:
        return BookRecord(
            id=self.id,
            title=self.title,
            author=self.author,
            genre=self.genre,
            status=self.status,
            isbn=self.isbn or "",
            rating=self.rating or 0,
            created_at=self.created_at,
        )


def encode_books(books: Iterable[BookRecord]) -> str:
    return json.dumps([record_to_dict(book) for book in books], ensure_ascii=False)


def decode_books(raw: Optional[str]) -> List[BookRecord]:
    """Parse a stored blob. Anything missing or malformed reads as an empty list."""
    if not raw:
        return []
    try:
        data: Any = json.loads(raw)
    except ValueError as error:
        logger.warning("Ignoring unreadable reading list: %s", error)
        return []
    if not isinstance(data, list):
        logger.warning("Ignoring reading list that is not a list.")
        return []
    try:
        stored = [StoredBook.model_validate(item) for item in data]
    except ValidationError as error:
        logger.warning("Ignoring invalid reading list: %s", error)
        return []

    seen = set()
    for item in stored:
        if item.status not in STATUSES or item.id in seen:
            logger.warning("Ignoring reading list with invalid book %r.", item.id)
            return []
        seen.add(item.id)
    return [item.to_record() for item in stored]


# -----------------------------------------------------------------------------
# Backends
# -----------------------------------------------------------------------------


class SQLiteStorage:
    """Key/value SQLite table holding the whole reading list as one JSON blob."""

    def __init__(self, db_path: Optional[Path] = None, key: Optional[str] = None):
        self.db_path = Path(db_path or Config.DB_PATH)
        self.key = key or Config.STORAGE_KEY
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._ensure_schema()
        except (sqlite3.Error, OSError) as error:
            logger.warning("Storage at %s is unavailable: %s", self.db_path, error)
            if self._conn is not None:
                self._conn.close()
            self._conn = None

    def _ensure_schema(self) -> None:
        assert self._conn is not None
        with self._conn:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT
                );
                """
            )

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def read_raw(self) -> Optional[str]:
        if self._conn is None:
            return None
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM kv WHERE key = ?;", (self.key,)
            ).fetchone()
        return row[0] if row else None

    def write_raw(self, value: str) -> None:
        if self._conn is None:
            raise sqlite3.OperationalError("storage is not open")
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO kv (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value;
                """,
                (self.key, value),
            )

    def load(self) -> List[BookRecord]:
        try:
            raw = self.read_raw()
        except sqlite3.Error as error:
            logger.warning("Could not read the reading list: %s", error)
            return []
        return decode_books(raw)

    def save(self, books: Iterable[BookRecord]) -> bool:
        try:
            self.write_raw(encode_books(books))
        except (sqlite3.Error, OSError, TypeError, ValueError) as error:
            logger.warning("Could not save the reading list: %s", error)
            return False
        return True


class MemoryStorage:
    """Process-local blob store."""

    def __init__(self, raw: Optional[str] = None):
        self.raw = raw
        self.saves = 0

    def load(self) -> List[BookRecord]:
        return decode_books(self.raw)

    def save(self, books: Iterable[BookRecord]) -> bool:
        self.raw = encode_books(books)
        self.saves += 1
        return True
