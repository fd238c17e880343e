import logging
import sqlite3
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from lending.book import Book, normalize_isbn
from lending.database import format_timestamp, transaction, use_connection, utcnow
from lending.errors import ConflictError, InvalidOperationError, NotFoundError

logger = logging.getLogger(__name__)

_BOOK_COLUMNS = """
    id, isbn, title, author, genre, publication_year, copies_available,
    created_at, created_by, updated_at, updated_by
"""


class BookLedger:
    """Owns the catalog: book metadata, ISBN uniqueness and the copy counter.

    ``copies_available`` is changed by loans only through :meth:`adjust_copies`,
    which runs inside the caller's transaction.
    """

    def __init__(self, db_file: Optional[str] = None, clock: Callable[[], datetime] = utcnow) -> None:
        self.db_file = db_file
        self.clock = clock

    # ------------------------- Lookups ------------------------- #
    def get_book(self, book_id: int, conn: Optional[sqlite3.Connection] = None) -> Book:
        with use_connection(self.db_file, conn) as c:
            row = c.execute(f"SELECT {_BOOK_COLUMNS} FROM books WHERE id = ?", (book_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Book not found with id: {book_id}")
        return Book.from_dict(dict(row))

    def book_exists(self, book_id: int, conn: Optional[sqlite3.Connection] = None) -> bool:
        with use_connection(self.db_file, conn) as c:
            row = c.execute("SELECT 1 FROM books WHERE id = ?", (book_id,)).fetchone()
        return row is not None

    def isbn_exists(self, isbn: str, conn: Optional[sqlite3.Connection] = None) -> bool:
        with use_connection(self.db_file, conn) as c:
            row = c.execute("SELECT 1 FROM books WHERE isbn = ?", (normalize_isbn(isbn),)).fetchone()
        return row is not None

    def list_books(self) -> List[Book]:
        """List every book (fresh from the database on each call)."""
        with use_connection(self.db_file) as conn:
            rows = conn.execute(f"SELECT {_BOOK_COLUMNS} FROM books ORDER BY id").fetchall()
        return [Book.from_dict(dict(row)) for row in rows]

    # ------------------------- Catalog operations ------------------------- #
    def create_book(self, book: Book, actor: Optional[str] = None) -> Book:
        """Add a new book. Duplicate ISBNs are rejected with ConflictError."""
        if not book.isbn:
            raise ValueError("ISBN cannot be blank.")
        if book.copies_available < 0:
            raise ValueError("Copies available cannot be negative.")
        with use_connection(self.db_file) as conn, transaction(conn):
            if self.isbn_exists(book.isbn, conn):
                raise ConflictError(f"Book with ISBN already exists: {book.isbn}")
            created = self._insert(conn, book, actor)
        logger.info("Book %s created (ISBN %s) by %s", created.id, created.isbn, actor or "anonymous")
        return created

    def import_books(self, books: Iterable[Book], actor: Optional[str] = None) -> List[Book]:
        """Bulk-create books in one transaction.

        Books whose ISBN is already in the catalog, or appeared earlier in the
        same batch, are skipped. Only the books actually created are returned.
        """
        books = list(books)
        if any(b.copies_available < 0 for b in books):
            raise ValueError("Copies available cannot be negative.")
        imported: List[Book] = []
        skipped = 0
        with use_connection(self.db_file) as conn, transaction(conn):
            for book in books:
                if not book.isbn or self.isbn_exists(book.isbn, conn):
                    skipped += 1
                    continue
                imported.append(self._insert(conn, book, actor))
        logger.info("Imported %d book(s), skipped %d duplicate(s)", len(imported), skipped)
        return imported

    def update_book(self, book_id: int, *, title: str, author: str, genre: str,
                    publication_year: int, copies_available: int, actor: Optional[str] = None) -> Book:
        """Overwrite every editable field of a book. The id and ISBN never change."""
        if copies_available < 0:
            raise ValueError("Copies available cannot be negative.")
        with use_connection(self.db_file) as conn, transaction(conn):
            self.get_book(book_id, conn)
            conn.execute(
                """
                UPDATE books
                SET title = ?, author = ?, genre = ?, publication_year = ?, copies_available = ?,
                    updated_at = ?, updated_by = ?
                WHERE id = ?
                """,
                (title.strip(), author.strip(), genre.strip(), publication_year, copies_available,
                 format_timestamp(self.clock()), actor, book_id),
            )
            updated = self.get_book(book_id, conn)
        logger.info("Book %s updated by %s", book_id, actor or "anonymous")
        return updated

    def delete_book(self, book_id: int) -> None:
        """Delete a book that has never been lent.

        Loans are never deleted, so a book referenced by any loan, active or
        returned, stays in the catalog.
        """
        with use_connection(self.db_file) as conn, transaction(conn):
            self.get_book(book_id, conn)
            active = conn.execute(
                "SELECT COUNT(*) FROM loans WHERE book_id = ? AND return_date IS NULL", (book_id,)
            ).fetchone()[0]
            if active:
                logger.warning("Refused to delete book %s with %d active loan(s)", book_id, active)
                raise InvalidOperationError(
                    f"Cannot delete book with active loans. Book has {active} active loan(s)"
                )
            total = conn.execute("SELECT COUNT(*) FROM loans WHERE book_id = ?", (book_id,)).fetchone()[0]
            if total:
                logger.warning("Refused to delete book %s with %d loan(s) on record", book_id, total)
                raise InvalidOperationError(
                    f"Cannot delete book with loan history. Book has {total} loan(s) on record"
                )
            conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
        logger.info("Book %s deleted", book_id)

    # ------------------------- Copy-count contract ------------------------- #
    def adjust_copies(self, conn: sqlite3.Connection, book_id: int, delta: int) -> Book:
        """Apply ``copies_available += delta`` inside the caller's open transaction.

        The availability check belongs to the caller; a decrement below zero
        is stopped only by the table's CHECK constraint.
        """
        book = self.get_book(book_id, conn)
        book.copies_available += delta
        conn.execute(
            "UPDATE books SET copies_available = ? WHERE id = ?",
            (book.copies_available, book_id),
        )
        return book

    # ------------------------- Persistence ------------------------- #
    def _insert(self, conn: sqlite3.Connection, book: Book, actor: Optional[str]) -> Book:
        now = self.clock()
        try:
            cursor = conn.execute(
                """
                INSERT INTO books (
                    isbn, title, author, genre, publication_year, copies_available,
                    created_at, created_by, updated_at, updated_by
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    book.isbn, book.title, book.author, book.genre, book.publication_year,
                    book.copies_available, format_timestamp(now), actor, format_timestamp(now), actor,
                ),
            )
        except sqlite3.IntegrityError as e:
            if "isbn" in str(e).lower():
                raise ConflictError(f"Book with ISBN already exists: {book.isbn}") from e
            raise
        return self.get_book(cursor.lastrowid, conn)
