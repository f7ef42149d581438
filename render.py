"""Toolkit-independent half of the book list: view models and command dispatch.

``RenderCoordinator`` re-derives the visible subset after every change and hands a full
``ListView`` to a surface (the Tk ``BookListFrame`` or a test double), which rebuilds its
widgets from scratch.  ``LibraryController`` maps each user interaction onto exactly one
``CollectionStore`` operation.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from covers import cover_url
from inventory import (
    COMPLETED,
    MAX_RATING,
    READING,
    TO_READ,
    BookDraft,
    BookRecord,
    CollectionStore,
    StatusChange,
    seed_samples,
)
from views import ViewCriteria, visible_books

logger = logging.getLogger(__name__)

STATUS_LABELS = {TO_READ: "To Read", READING: "Reading", COMPLETED: "Completed"}

NO_COVER_TEXT = "No cover"
EMPTY_COLLECTION_TEXT = "No books yet. Add one above, or seed a few samples."
NO_MATCHES_TEXT = "No books match the current filters."

Confirm = Callable[[str], bool]
Notify = Callable[[str], None]


def status_label(status: str) -> str:
    return STATUS_LABELS.get(status, STATUS_LABELS[COMPLETED])


def status_pill_class(status: str) -> str:
    if status == COMPLETED:
        return "pill pill--ok"
    if status == READING:
        return "pill pill--warn"
    return "pill"


def star_title(position: int) -> str:
    return f"{position} star{'' if position == 1 else 's'}"


def count_text(visible: int, total: int) -> str:
    return f"{visible} shown • {total} total"


@dataclass(frozen=True)
class CardView:
    book_id: str
    title: str
    summary: str
    status: str
    status_label: str
    status_pill: str
    rating: int
    rating_text: str
    stars: Tuple[bool, ...]
    cover_url: Optional[str]
    cover_alt: str


@dataclass(frozen=True)
class ListView:
    cards: List[CardView]
    count_text: str
    empty_text: str
    books: List[BookRecord] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.cards


def build_card(book: BookRecord) -> CardView:
    rating = book.rating or 0
    return CardView(
        book_id=book.id,
        title=book.title,
        summary=f"{book.author} • {book.genre}",
        status=book.status,
        status_label=status_label(book.status),
        status_pill=status_pill_class(book.status),
        rating=rating,
        rating_text=f"Rating: {rating}/{MAX_RATING}",
        stars=tuple(rating >= position for position in range(1, MAX_RATING + 1)),
        cover_url=cover_url(book.isbn),
        cover_alt=f"{book.title} cover",
    )


def build_list_view(visible: Sequence[BookRecord], total: int) -> ListView:
    return ListView(
        cards=[build_card(book) for book in visible],
        count_text=count_text(len(visible), total),
        empty_text=EMPTY_COLLECTION_TEXT if total == 0 else NO_MATCHES_TEXT,
        books=list(visible),
    )


class ListSurface(Protocol):
    def rebuild(self, view: ListView) -> None:
        ...


class RenderCoordinator:
    def __init__(
        self,
        store: CollectionStore,
        criteria: Callable[[], ViewCriteria],
        surface: Optional[ListSurface] = None,
    ):
        self.store = store
        self.criteria = criteria
        self.surface = surface
        self.last_view: Optional[ListView] = None

    def refresh(self) -> ListView:
        books = self.store.list()
        visible = visible_books(books, self.criteria())
        view = build_list_view(visible, len(books))
        self.last_view = view
        if self.surface is not None:
            self.surface.rebuild(view)
        return view


class LibraryController:
    """Named commands for every interaction on the reading list."""

    def __init__(
        self,
        store: CollectionStore,
        coordinator: RenderCoordinator,
        *,
        confirm: Confirm,
        notify: Notify,
    ):
        self.store = store
        self.coordinator = coordinator
        self.confirm = confirm
        self.notify = notify

    def add(self, draft: BookDraft) -> Optional[BookRecord]:
        book = self.store.create(draft)
        if book is None:
            return None
        self.coordinator.refresh()
        self.notify("Added.")
        return book

    def change_status(self, book_id: str, status: str) -> Optional[StatusChange]:
        change = self.store.set_status(book_id, status, announce=False)
        if change is None:
            return None
        self.coordinator.refresh()
        self.store.announce(change)
        if change.completed:
            self.notify(f"Completed: {change.title} 🎉")
        else:
            self.notify("Status updated.")
        return change

    def rate(self, book_id: str, value: int) -> bool:
        if not self.store.set_rating(book_id, value):
            return False
        self.coordinator.refresh()
        self.notify(f"Rated {value}/{MAX_RATING}.")
        return True

    def delete(self, book_id: str) -> bool:
        book = self.store.get(book_id)
        label = book.title if book else "this book"
        if not self.confirm(f'Delete "{label}"?'):
            return False
        if not self.store.delete(book_id):
            return False
        self.coordinator.refresh()
        self.notify("Deleted.")
        return True

    def clear(self) -> bool:
        if not len(self.store):
            return False
        if not self.confirm("Clear ALL books? This cannot be undone."):
            return False
        self.store.clear()
        self.coordinator.refresh()
        self.notify("Cleared.")
        return True

    def seed(self) -> List[BookRecord]:
        created = seed_samples(self.store)
        self.coordinator.refresh()
        if created:
            self.notify("Added.")
        return created

    def criteria_changed(self) -> ListView:
        return self.coordinator.refresh()
