import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from lending.config import settings

logger = logging.getLogger(__name__)


# ------------------------- Timestamps ------------------------- #
def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC; aware ones are converted.

    Raises ValueError when the UTC equivalent falls outside the datetime range.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    try:
        return value.astimezone(timezone.utc)
    except OverflowError as e:
        raise ValueError(f"Date out of range: {value.isoformat()}") from e


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    # Fixed microsecond precision keeps lexical order equal to time order,
    # which the overdue query relies on.
    if value is None:
        return None
    return to_utc(value).isoformat(timespec="microseconds")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return to_utc(datetime.fromisoformat(value))


# ------------------------- Connections ------------------------- #
def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """Open a connection in autocommit mode; transactions are explicit."""
    conn = sqlite3.connect(
        db_file or settings.database_file,
        timeout=settings.database_timeout,
        isolation_level=None,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    return conn


@contextmanager
def use_connection(db_file: Optional[str], conn: Optional[sqlite3.Connection] = None) -> Iterator[sqlite3.Connection]:
    """Yield ``conn`` when the caller already holds one, else a fresh connection closed on exit."""
    if conn is not None:
        yield conn
        return
    own = get_db_connection(db_file)
    try:
        yield own
    finally:
        own.close()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the block as one write transaction.

    ``BEGIN IMMEDIATE`` takes the database write lock up front, so reads made
    inside the block cannot be invalidated by another writer before commit.
    Any exception rolls back every statement of the block.
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    else:
        conn.execute("COMMIT")


# ------------------------- Schema ------------------------- #
def create_tables(db_file: Optional[str] = None) -> None:
    """Create the tables and indexes if they do not exist."""
    conn = get_db_connection(db_file)
    try:
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS books (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                isbn TEXT UNIQUE NOT NULL,
                title TEXT NOT NULL,
                author TEXT NOT NULL,
                genre TEXT NOT NULL,
                publication_year INTEGER NOT NULL,
                copies_available INTEGER NOT NULL CHECK(copies_available >= 0),
                created_at TEXT,
                created_by TEXT,
                updated_at TEXT,
                updated_by TEXT
            );

            CREATE TABLE IF NOT EXISTS members (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                email TEXT UNIQUE NOT NULL COLLATE NOCASE,
                phone TEXT NOT NULL,
                membership_date TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS loans (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                member_id INTEGER NOT NULL,
                book_id INTEGER NOT NULL,
                borrow_date TEXT NOT NULL,
                due_date TEXT NOT NULL,
                return_date TEXT,
                FOREIGN KEY (member_id) REFERENCES members(id),
                FOREIGN KEY (book_id) REFERENCES books(id)
            );

            -- one active loan per (member, book)
            CREATE UNIQUE INDEX IF NOT EXISTS idx_loans_active_pair
                ON loans(member_id, book_id) WHERE return_date IS NULL;
            CREATE INDEX IF NOT EXISTS idx_loans_member_id ON loans(member_id);
            CREATE INDEX IF NOT EXISTS idx_loans_book_id ON loans(book_id);
            CREATE INDEX IF NOT EXISTS idx_loans_return_due ON loans(return_date, due_date);
        """)
    finally:
        conn.close()


def initialize_database(db_file: Optional[str] = None) -> None:
    """Initialize the database, creating tables when needed."""
    create_tables(db_file)
    logger.debug("Database ready at %s", db_file or settings.database_file)
