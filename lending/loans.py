"""Loan lifecycle and loan projections.

``LoanManager`` is the only writer of loans. A loan starts ACTIVE
(``return_date`` is null) and moves once, irreversibly, to RETURNED. Every
borrow and return writes the loan row and adjusts the book's copy counter in
the same ``BEGIN IMMEDIATE`` transaction, so the availability check, the
duplicate-active-loan check and both writes are serialized against other
writers and either all persist or none do.

``LoanQueries`` holds the read-only projections over the stored loans.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta
from typing import Any, Callable, List, Optional, Sequence

from lending.catalog import BookLedger
from lending.config import settings
from lending.database import format_timestamp, to_utc, transaction, use_connection, utcnow
from lending.errors import ConflictError, InvalidOperationError, NotFoundError, UnavailableError
from lending.loan import Loan
from lending.members import MemberRegistry

logger = logging.getLogger(__name__)

_LOAN_SELECT = """
    SELECT l.id, l.member_id, l.book_id, l.borrow_date, l.due_date, l.return_date,
           m.name AS member_name, b.title AS book_title
    FROM loans l
    LEFT JOIN members m ON m.id = l.member_id
    LEFT JOIN books b ON b.id = l.book_id
"""


def _select_loans(conn: sqlite3.Connection, where: str = "", params: Sequence[Any] = ()) -> List[Loan]:
    sql = _LOAN_SELECT + (f" WHERE {where}" if where else "") + " ORDER BY l.id"
    return [Loan.from_dict(dict(row)) for row in conn.execute(sql, tuple(params)).fetchall()]


class LoanManager:
    """Borrow/return state machine over the loans table."""

    def __init__(self, ledger: BookLedger, members: MemberRegistry, db_file: Optional[str] = None,
                 clock: Callable[[], datetime] = utcnow, loan_days: Optional[int] = None) -> None:
        self.ledger = ledger
        self.members = members
        self.db_file = db_file
        self.clock = clock
        self.loan_days = loan_days if loan_days is not None else settings.default_loan_days

    def borrow(self, member_id: int, book_id: int, due_date: Optional[datetime] = None) -> Loan:
        """Lend one copy of a book to a member.

        Checks, in order: member exists, book exists, no active loan for the
        pair, at least one copy available. ``due_date`` defaults to borrow
        time plus ``loan_days``; a supplied value is taken as is.
        """
        supplied_due = to_utc(due_date) if due_date is not None else None
        with use_connection(self.db_file) as conn, transaction(conn):
            self.members.get_member(member_id, conn)
            book = self.ledger.get_book(book_id, conn)

            if self._has_active_loan(conn, member_id, book_id):
                logger.warning("Borrow rejected: member %s already holds book %s", member_id, book_id)
                raise ConflictError(
                    f"Member already has an active loan for this book. "
                    f"Member ID: {member_id}, Book ID: {book_id}"
                )
            if book.copies_available <= 0:
                logger.warning("Borrow rejected: no copies left of book %s", book_id)
                raise UnavailableError(f"Book is not available. No copies left. Book ID: {book_id}")

            now = self.clock()
            due = supplied_due if supplied_due is not None else now + timedelta(days=self.loan_days)
            try:
                cursor = conn.execute(
                    "INSERT INTO loans (member_id, book_id, borrow_date, due_date) VALUES (?, ?, ?, ?)",
                    (member_id, book_id, format_timestamp(now), format_timestamp(due)),
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError(
                    f"Member already has an active loan for this book. "
                    f"Member ID: {member_id}, Book ID: {book_id}"
                ) from e
            self.ledger.adjust_copies(conn, book_id, -1)
            loan = self._load(conn, cursor.lastrowid)

        logger.info("Loan %s created: member %s borrowed book %s, due %s",
                    loan.id, member_id, book_id, format_timestamp(loan.due_date))
        return loan

    def return_loan(self, loan_id: int, return_date: Optional[datetime] = None) -> Loan:
        """Close an active loan and put the copy back on the shelf."""
        supplied_return = to_utc(return_date) if return_date is not None else None
        with use_connection(self.db_file) as conn, transaction(conn):
            loan = self._load(conn, loan_id)
            if loan.return_date is not None:
                logger.warning("Return rejected: loan %s already returned", loan_id)
                raise InvalidOperationError(f"Loan has already been returned. Loan ID: {loan_id}")

            returned_at = supplied_return if supplied_return is not None else self.clock()
            conn.execute(
                "UPDATE loans SET return_date = ? WHERE id = ? AND return_date IS NULL",
                (format_timestamp(returned_at), loan_id),
            )
            self.ledger.adjust_copies(conn, loan.book_id, 1)
            loan = self._load(conn, loan_id)

        logger.info("Loan %s returned (book %s)", loan_id, loan.book_id)
        return loan

    def get_loan(self, loan_id: int) -> Loan:
        with use_connection(self.db_file) as conn:
            return self._load(conn, loan_id)

    def member_loan_history(self, member_id: int) -> List[Loan]:
        """Every loan of a member, active and returned."""
        with use_connection(self.db_file) as conn:
            if not self.members.member_exists(member_id, conn):
                raise NotFoundError(f"Member not found with id: {member_id}")
            return _select_loans(conn, "l.member_id = ?", (member_id,))

    @staticmethod
    def _has_active_loan(conn: sqlite3.Connection, member_id: int, book_id: int) -> bool:
        row = conn.execute(
            "SELECT 1 FROM loans WHERE member_id = ? AND book_id = ? AND return_date IS NULL",
            (member_id, book_id),
        ).fetchone()
        return row is not None

    @staticmethod
    def _load(conn: sqlite3.Connection, loan_id: int) -> Loan:
        loans = _select_loans(conn, "l.id = ?", (loan_id,))
        if not loans:
            raise NotFoundError(f"Loan not found with id: {loan_id}")
        return loans[0]


class LoanQueries:
    """Read-only views over stored loans. Safe to run alongside any writer."""

    def __init__(self, db_file: Optional[str] = None, clock: Callable[[], datetime] = utcnow) -> None:
        self.db_file = db_file
        self.clock = clock

    def list_overdue(self) -> List[Loan]:
        """Active loans whose due date is strictly before now."""
        with use_connection(self.db_file) as conn:
            return _select_loans(
                conn, "l.return_date IS NULL AND l.due_date < ?", (format_timestamp(self.clock()),)
            )

    def list_active(self) -> List[Loan]:
        with use_connection(self.db_file) as conn:
            return _select_loans(conn, "l.return_date IS NULL")
