from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

if TYPE_CHECKING:
    from storage import StoragePort

logger = logging.getLogger(__name__)

TO_READ = "to-read"
READING = "reading"
COMPLETED = "completed"
STATUSES = (TO_READ, READING, COMPLETED)

GENRES = (
    "Fiction",
    "Nonfiction",
    "Fantasy",
    "Science Fiction",
    "Mystery",
    "Romance",
    "Biography",
    "History",
    "Self-Help",
    "Poetry",
    "Other",
)

MIN_RATING = 0
MAX_RATING = 5


@dataclass
class BookRecord:
    id: str
    title: str
    author: str
    genre: str
    status: str
    isbn: str = ""
    rating: int = 0
    created_at: int = 0


@dataclass
class BookDraft:
    """Raw add-book form input, before trimming and validation."""

    title: str = ""
    author: str = ""
    genre: str = ""
    status: str = TO_READ
    isbn: str = ""


@dataclass(frozen=True)
class StatusChange:
    id: str
    title: str
    from_status: str
    to_status: str

    @property
    def completed(self) -> bool:
        return self.from_status != COMPLETED and self.to_status == COMPLETED


TransitionListener = Callable[[StatusChange], None]

SAMPLE_BOOKS = (
    BookDraft("The Alchemist", "Paulo Coelho", "Fiction", TO_READ, "9780061122415"),
    BookDraft("Atomic Habits", "James Clear", "Nonfiction", READING, "9780735211292"),
    BookDraft("Dune", "Frank Herbert", "Fantasy", COMPLETED, "9780441013593"),
)


def _now_ms() -> int:
    return int(time.time() * 1000)


class CollectionStore:
    """In-memory reading list that persists itself after every mutation."""

    def __init__(self, storage: "StoragePort", *, clock: Callable[[], int] = _now_ms):
        self.storage = storage
        self._clock = clock
        self._books: List[BookRecord] = list(storage.load())
        self._listeners: List[TransitionListener] = []
        self._last_created = max((book.created_at for book in self._books), default=0)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #
    def __len__(self) -> int:
        return len(self._books)

    def list(self) -> List[BookRecord]:
        return [replace(book) for book in self._books]

    def get(self, book_id: str) -> Optional[BookRecord]:
        book = self._find(book_id)
        return replace(book) if book else None

    def subscribe(self, listener: TransitionListener) -> Callable[[], None]:
        """Register a listener for completed-transition events."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #
    def create(self, draft: BookDraft) -> Optional[BookRecord]:
        title = (draft.title or "").strip()
        author = (draft.author or "").strip()
        if not title or not author or not draft.genre or not draft.status:
            logger.debug("Rejected book without title, author, genre or status.")
            return None
        if draft.status not in STATUSES:
            logger.debug("Rejected book with unknown status %r.", draft.status)
            return None

        created_at = max(self._clock(), self._last_created + 1)
        self._last_created = created_at
        book = BookRecord(
            id=uuid.uuid4().hex,
            title=title,
            author=author,
            genre=draft.genre,
            status=draft.status,
            isbn=(draft.isbn or "").strip(),
            rating=0,
            created_at=created_at,
        )
        self._books.insert(0, book)
        self._persist()
        logger.info("Added '%s' by %s.", book.title, book.author)
        return replace(book)

    def delete(self, book_id: str) -> bool:
        book = self._find(book_id)
        if book is None:
            return False
        self._books = [b for b in self._books if b.id != book_id]
        self._persist()
        logger.info("Deleted '%s'.", book.title)
        return True

    def set_rating(self, book_id: str, value: int) -> bool:
        if isinstance(value, bool) or not isinstance(value, int):
            logger.debug("Rejected non-integer rating %r.", value)
            return False
        if not MIN_RATING <= value <= MAX_RATING:
            logger.debug("Rejected out-of-range rating %r.", value)
            return False
        book = self._find(book_id)
        if book is None:
            return False
        book.rating = value
        self._persist()
        logger.info("Rated '%s' %d/%d.", book.title, value, MAX_RATING)
        return True

    def set_status(
        self, book_id: str, value: str, *, announce: bool = True
    ) -> Optional[StatusChange]:
        """Persist the new status. With ``announce=False`` the caller is expected to call
        :meth:`announce` itself once the change is on screen."""
        if value not in STATUSES:
            logger.debug("Rejected unknown status %r.", value)
            return None
        book = self._find(book_id)
        if book is None:
            return None
        change = StatusChange(
            id=book.id, title=book.title, from_status=book.status, to_status=value
        )
        book.status = value
        self._persist()
        logger.info("'%s' moved from %s to %s.", book.title, change.from_status, value)
        if announce:
            self.announce(change)
        return change

    def announce(self, change: StatusChange) -> None:
        """Tell listeners about a completed-transition; other changes are ignored."""
        if not change.completed:
            return
        for listener in list(self._listeners):
            listener(change)

    def clear(self) -> bool:
        if not self._books:
            return False
        self._books = []
        self._persist()
        logger.info("Cleared the reading list.")
        return True

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _find(self, book_id: str) -> Optional[BookRecord]:
        return next((book for book in self._books if book.id == book_id), None)

    def _persist(self) -> None:
        if not self.storage.save(self.list()):
            logger.warning("Changes are kept in memory only for this session.")


def seed_samples(store: CollectionStore) -> List[BookRecord]:
    """Add the three fixed sample books, in order."""
    created: List[BookRecord] = []
    for draft in SAMPLE_BOOKS:
        book = store.create(replace(draft))
        if book is not None:
            created.append(book)
    return created


def record_to_dict(book: BookRecord) -> Dict[str, object]:
    """Return the persisted (camelCase) layout of a record."""
    return {
        "id": book.id,
        "title": book.title,
        "author": book.author,
        "genre": book.genre,
        "status": book.status,
        "isbn": book.isbn,
        "rating": book.rating,
        "createdAt": book.created_at,
    }
