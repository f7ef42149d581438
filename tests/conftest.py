from __future__ import annotations

import itertools
from typing import Callable

import pytest

from inventory import BookDraft, CollectionStore
from storage import MemoryStorage


def make_clock(start: int = 1_700_000_000_000, step: int = 1000) -> Callable[[], int]:
    counter = itertools.count(start, step)
    return lambda: next(counter)


def draft(title: str = "Dune", author: str = "Frank Herbert", **overrides: str) -> BookDraft:
    values = {"genre": "Fantasy", "status": "to-read", "isbn": ""}
    values.update(overrides)
    return BookDraft(title=title, author=author, **values)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(storage: MemoryStorage) -> CollectionStore:
    return CollectionStore(storage, clock=make_clock())
