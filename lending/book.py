from __future__ import annotations

from datetime import datetime

from lending.database import format_timestamp, parse_timestamp


class Book:
    """Represents a single title in the catalog and its available-copy count."""

    def __init__(self, title: str, author: str, isbn: str, genre: str, publication_year: int,
                 copies_available: int = 0, id: int | None = None,
                 # Audit fields
                 created_at: datetime | None = None, created_by: str | None = None,
                 updated_at: datetime | None = None, updated_by: str | None = None) -> None:
        self.id = id
        self.title = title.strip()
        self.author = author.strip()
        self.isbn = normalize_isbn(isbn)
        self.genre = genre.strip()
        self.publication_year = publication_year
        self.copies_available = copies_available

        self.created_at = created_at
        self.created_by = created_by
        self.updated_at = updated_at
        self.updated_by = updated_by

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} (ISBN: {self.isbn})"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "genre": self.genre,
            "publication_year": self.publication_year,
            "copies_available": self.copies_available,
            # Audit fields
            "created_at": format_timestamp(self.created_at),
            "created_by": self.created_by,
            "updated_at": format_timestamp(self.updated_at),
            "updated_by": self.updated_by,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        return Book(
            id=data.get("id"),
            title=data["title"],
            author=data["author"],
            isbn=data["isbn"],
            genre=data["genre"],
            publication_year=data["publication_year"],
            copies_available=data.get("copies_available", 0),
            created_at=parse_timestamp(data.get("created_at")),
            created_by=data.get("created_by"),
            updated_at=parse_timestamp(data.get("updated_at")),
            updated_by=data.get("updated_by"),
        )


def normalize_isbn(raw: str | None) -> str:
    """Strip whitespace and hyphens; an ``x`` check digit is upper-cased."""
    if raw is None:
        return ""
    return "".join(ch for ch in raw if ch not in " -\t").upper()
