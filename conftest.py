from datetime import datetime, timedelta, timezone

import pytest

from lending.book import Book
from lending.library import Library
from lending.member import Member


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def lib(tmp_path, request, clock):
    # Unique database file per test
    db_file = str(tmp_path / f"test_{request.node.name}.db")
    yield Library(db_file=db_file, clock=clock)


@pytest.fixture
def make_book(lib):
    counter = {"n": 0}

    def _make(copies=1, title=None, isbn=None, actor="librarian"):
        counter["n"] += 1
        n = counter["n"]
        book = Book(
            title=title or f"Book {n}",
            author="Test Author",
            isbn=isbn or f"978000000{n:04d}",
            genre="Fiction",
            publication_year=2001,
            copies_available=copies,
        )
        return lib.books.create_book(book, actor=actor)

    return _make


@pytest.fixture
def make_member(lib):
    counter = {"n": 0}

    def _make(name=None, email=None):
        counter["n"] += 1
        n = counter["n"]
        return lib.members.create_member(
            Member(name=name or f"Member {n}", email=email or f"member{n}@example.com", phone="555-010-0000")
        )

    return _make
