from __future__ import annotations

import locale
from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence, Tuple

from inventory import COMPLETED, READING, STATUSES, TO_READ, BookRecord

ALL = "all"

STATUS_FILTERS: List[Tuple[str, str]] = [
    (ALL, "All"),
    (TO_READ, "To Read"),
    (READING, "Reading"),
    (COMPLETED, "Completed"),
]

SORT_KEYS: List[Tuple[str, str]] = [
    ("created-desc", "Newest first"),
    ("created-asc", "Oldest first"),
    ("title-asc", "Title A–Z"),
    ("title-desc", "Title Z–A"),
    ("author-asc", "Author A–Z"),
    ("rating-desc", "Highest rated"),
]


def normalize(value: str) -> str:
    return (value or "").strip().casefold()


def collation_key(value: str) -> Tuple[str, str]:
    """Locale-aware sort key, case-insensitive first with the raw text as a tie-break."""
    # strxfrm cannot handle embedded NULs
    text = (value or "").replace("\0", "")
    return (locale.strxfrm(text.casefold()), locale.strxfrm(text))


@dataclass(frozen=True)
class ViewCriteria:
    search_text: str = ""
    status_filter: str = ALL
    sort_key: str = "created-desc"

    def __post_init__(self) -> None:
        if self.status_filter != ALL and self.status_filter not in STATUSES:
            raise ValueError(f"Unknown status filter: {self.status_filter!r}")
        if self.sort_key not in _SORTS:
            raise ValueError(f"Unknown sort key: {self.sort_key!r}")


# (key function, descending)
_SORTS: Dict[str, Tuple[Callable[[BookRecord], object], bool]] = {
    "created-asc": (lambda book: book.created_at, False),
    "created-desc": (lambda book: book.created_at, True),
    "title-asc": (lambda book: collation_key(book.title), False),
    "title-desc": (lambda book: collation_key(book.title), True),
    "author-asc": (lambda book: collation_key(book.author), False),
    "rating-desc": (lambda book: book.rating or 0, True),
}


def visible_books(collection: Sequence[BookRecord], criteria: ViewCriteria) -> List[BookRecord]:
    """Filter by status, then by search text, then sort. Inputs are never modified."""
    books = list(collection)

    if criteria.status_filter != ALL:
        books = [book for book in books if book.status == criteria.status_filter]

    query = normalize(criteria.search_text)
    if query:
        books = [
            book
            for book in books
            if query in normalize(book.title) or query in normalize(book.author)
        ]

    # sorted() is stable, including with reverse=True; rating-desc relies on it.
    key, descending = _SORTS[criteria.sort_key]
    return sorted(books, key=key, reverse=descending)
