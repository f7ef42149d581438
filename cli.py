from __future__ import annotations

import argparse
import locale
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

import pandas

from config import Config
from covers import cover_url
from inventory import (
    GENRES,
    STATUSES,
    TO_READ,
    BookDraft,
    BookRecord,
    CollectionStore,
    StatusChange,
)
from render import LibraryController, RenderCoordinator, status_label
from storage import MemoryStorage, SQLiteStorage
from views import ALL, SORT_KEYS, ViewCriteria

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "title",
    "author",
    "genre",
    "status",
    "rating",
    "isbn",
    "cover_url",
    "created_at",
]


def describe_book(book: BookRecord, index: int) -> str:
    """Return a printable description for a reading-list entry."""
    lines = [
        f"{index}. {book.title}",
        f"   {book.author} • {book.genre}",
        f"   {status_label(book.status)} • Rating: {book.rating}/5",
        f"   ID: {book.id}",
    ]
    if book.isbn:
        lines.append(f"   ISBN: {book.isbn}")
    return "\n".join(lines)


def books_frame(books: Sequence[BookRecord]) -> pandas.DataFrame:
    rows = [
        {
            "title": book.title,
            "author": book.author,
            "genre": book.genre,
            "status": book.status,
            "rating": book.rating,
            "isbn": book.isbn,
            "cover_url": cover_url(book.isbn) or "",
            "created_at": pandas.to_datetime(book.created_at, unit="ms"),
        }
        for book in books
    ]
    return pandas.DataFrame(rows, columns=EXPORT_COLUMNS)


def export_books(books: Sequence[BookRecord], path: Path) -> Path:
    """Write books to CSV, or to Excel when the suffix asks for it."""
    frame = books_frame(books)
    if path.suffix.lower() in {".xlsx", ".xls"}:
        frame.to_excel(path, index=False)
    else:
        frame.to_csv(path, index=False)
    return path


def ask_yes_no(message: str) -> bool:
    response = input(f"{message} (y/n): ").strip().lower()
    return response in {"y", "yes"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="booklog-cli", description="Manage your reading list.")
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--db", type=Path, help=f"SQLite file (default: {Config.DB_PATH})")
    target.add_argument(
        "--memory", action="store_true", help="Use a throwaway in-memory reading list."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_view_options(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--search", default="", help="Match title or author.")
        sub.add_argument("--status", default=ALL, choices=[ALL, *STATUSES])
        sub.add_argument(
            "--sort", default=SORT_KEYS[0][0], choices=[key for key, _ in SORT_KEYS]
        )

    list_parser = subparsers.add_parser("list", help="Show the reading list.")
    add_view_options(list_parser)

    add_parser = subparsers.add_parser("add", help="Add a book.")
    add_parser.add_argument("--title", required=True)
    add_parser.add_argument("--author", required=True)
    add_parser.add_argument("--genre", required=True, help=", ".join(GENRES))
    add_parser.add_argument("--status", default=TO_READ, choices=STATUSES)
    add_parser.add_argument("--isbn", default="")

    status_parser = subparsers.add_parser("status", help="Change a book's status.")
    status_parser.add_argument("book_id")
    status_parser.add_argument("value", choices=STATUSES)

    rate_parser = subparsers.add_parser("rate", help="Rate a book from 0 to 5.")
    rate_parser.add_argument("book_id")
    rate_parser.add_argument("value", type=int)

    delete_parser = subparsers.add_parser("delete", help="Delete a book.")
    delete_parser.add_argument("book_id")
    delete_parser.add_argument("--yes", action="store_true", help="Skip the confirmation.")

    clear_parser = subparsers.add_parser("clear", help="Delete every book.")
    clear_parser.add_argument("--yes", action="store_true", help="Skip the confirmation.")

    subparsers.add_parser("seed", help="Add three sample books.")

    export_parser = subparsers.add_parser("export", help="Export the visible books.")
    export_parser.add_argument("path", type=Path)
    add_view_options(export_parser)

    return parser


def _criteria(args: argparse.Namespace) -> ViewCriteria:
    if args.command not in {"list", "export"}:
        return ViewCriteria()
    return ViewCriteria(
        search_text=args.search, status_filter=args.status, sort_key=args.sort
    )


def run(args: argparse.Namespace) -> int:
    storage = MemoryStorage() if args.memory else SQLiteStorage(args.db)
    store = CollectionStore(storage)
    criteria = _criteria(args)
    coordinator = RenderCoordinator(store, lambda: criteria)
    assume_yes = getattr(args, "yes", False)
    library = LibraryController(
        store,
        coordinator,
        confirm=lambda message: assume_yes or ask_yes_no(message),
        notify=print,
    )

    def celebrate(change: StatusChange) -> None:
        print(f"🎉 Finished '{change.title}'!")
        if Config.SOUND_ENABLED:
            sys.stdout.write("\a")
            sys.stdout.flush()

    store.subscribe(celebrate)

    try:
        if args.command == "list":
            view = coordinator.refresh()
            if view.empty:
                print(view.empty_text)
            for index, book in enumerate(view.books, start=1):
                print(describe_book(book, index))
            print(view.count_text)
            return 0

        if args.command == "add":
            draft = BookDraft(args.title, args.author, args.genre, args.status, args.isbn)
            book = library.add(draft)
            if book is None:
                print("Title, author, genre and status are required.")
                return 1
            print(f"ID: {book.id}")
            return 0

        if args.command in {"status", "rate", "delete"} and store.get(args.book_id) is None:
            print(f"No book with ID {args.book_id}.")
            return 1

        if args.command == "status":
            library.change_status(args.book_id, args.value)
            return 0

        if args.command == "rate":
            if not library.rate(args.book_id, args.value):
                print("Ratings go from 0 to 5.")
                return 1
            return 0

        if args.command == "delete":
            if not library.delete(args.book_id):
                print("Kept the book.")
            return 0

        if args.command == "clear":
            if not len(store):
                print("The reading list is already empty.")
                return 0
            library.clear()
            return 0

        if args.command == "seed":
            library.seed()
            return 0

        if args.command == "export":
            books = coordinator.refresh().books
            path = export_books(books, args.path)
            print(f"Exported {len(books)} book(s) to {path}")
            return 0
    finally:
        if isinstance(storage, SQLiteStorage):
            storage.close()

    return 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(
        level=Config.LOG_LEVEL, format="%(asctime)s - %(levelname)s - %(message)s"
    )
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error:
        logger.debug("Falling back to the default collation locale.")
    args = build_parser().parse_args(argv)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
