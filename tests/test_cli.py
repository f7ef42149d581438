from __future__ import annotations

from pathlib import Path

import pandas
import pytest

import cli
from storage import SQLiteStorage


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "cli.db"


def _run(db_path: Path, *args: str) -> int:
    return cli.main(["--db", str(db_path), *args])


def _books(db_path: Path):
    storage = SQLiteStorage(db_path)
    try:
        return storage.load()
    finally:
        storage.close()


def test_add_and_list(db_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(db_path, "add", "--title", " Emma ", "--author", "Jane Austen", "--genre", "Fiction") == 0
    assert _run(db_path, "seed") == 0
    capsys.readouterr()

    assert _run(db_path, "list", "--search", "EMMA") == 0
    output = capsys.readouterr().out
    assert "1. Emma" in output
    assert "Jane Austen • Fiction" in output
    assert "1 shown • 4 total" in output


def test_add_rejects_blank_title(db_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(db_path, "add", "--title", "  ", "--author", "Someone", "--genre", "Fiction") == 1
    assert _books(db_path) == []


def test_status_rate_and_celebration(db_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _run(db_path, "add", "--title", "Dune", "--author", "Frank Herbert", "--genre", "Fantasy")
    (book,) = _books(db_path)
    capsys.readouterr()

    assert _run(db_path, "status", book.id, "reading") == 0
    assert "Status updated." in capsys.readouterr().out

    assert _run(db_path, "status", book.id, "completed") == 0
    output = capsys.readouterr().out
    assert "Finished 'Dune'" in output
    assert "Completed: Dune" in output

    assert _run(db_path, "rate", book.id, "5") == 0
    assert _run(db_path, "rate", book.id, "6") == 1
    (stored,) = _books(db_path)
    assert stored.status == "completed"
    assert stored.rating == 5


def test_unknown_id(db_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(db_path, "rate", "missing", "3") == 1
    assert "No book with ID missing." in capsys.readouterr().out


def test_delete_asks_for_confirmation(
    db_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    _run(db_path, "seed")
    dune = _books(db_path)[0]

    monkeypatch.setattr("builtins.input", lambda _prompt: "n")
    assert _run(db_path, "delete", dune.id) == 0
    assert len(_books(db_path)) == 3

    assert _run(db_path, "delete", dune.id, "--yes") == 0
    assert [book.title for book in _books(db_path)] == ["Atomic Habits", "The Alchemist"]


def test_clear(db_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(db_path, "clear", "--yes") == 0
    assert "already empty" in capsys.readouterr().out

    _run(db_path, "seed")
    monkeypatch.setattr("builtins.input", lambda _prompt: "yes")
    assert _run(db_path, "clear") == 0
    assert _books(db_path) == []


def test_export_visible_books(db_path: Path, tmp_path: Path) -> None:
    _run(db_path, "seed")
    target = tmp_path / "export.csv"

    assert _run(db_path, "export", str(target), "--sort", "title-asc") == 0

    frame = pandas.read_csv(target, dtype={"isbn": str})
    assert list(frame["title"]) == ["Atomic Habits", "Dune", "The Alchemist"]
    assert list(frame.columns) == cli.EXPORT_COLUMNS
    assert frame.loc[1, "cover_url"] == "https://covers.openlibrary.org/b/isbn/9780441013593-M.jpg"


def test_memory_flag_leaves_nothing_behind(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["--memory", "seed"]) == 0
    assert cli.main(["--memory", "list"]) == 0
    assert "No books yet" in capsys.readouterr().out
