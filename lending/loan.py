from __future__ import annotations

from datetime import datetime
from typing import Optional

from lending.database import format_timestamp, parse_timestamp, to_utc, utcnow


class Loan:
    """A borrowing transaction between a member and a book.

    ``member_name`` and ``book_title`` are display fields filled in when the
    loan is read together with its member and book; they are not stored.
    """

    def __init__(self, member_id: int, book_id: int, borrow_date: datetime, due_date: datetime,
                 return_date: Optional[datetime] = None, id: Optional[int] = None,
                 member_name: Optional[str] = None, book_title: Optional[str] = None) -> None:
        self.id = id
        self.member_id = member_id
        self.book_id = book_id
        self.borrow_date = to_utc(borrow_date)
        self.due_date = to_utc(due_date)
        self.return_date = to_utc(return_date) if return_date is not None else None
        self.member_name = member_name
        self.book_title = book_title

    @property
    def is_active(self) -> bool:
        return self.return_date is None

    @property
    def status(self) -> str:
        """Human readable status: ACTIVE or RETURNED."""
        return "ACTIVE" if self.is_active else "RETURNED"

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """True if the loan is still active and ``now`` is past the due date."""
        if self.return_date is not None:
            return False
        now = to_utc(now) if now is not None else utcnow()
        return now > self.due_date

    def __repr__(self) -> str:  # pragma: no cover
        return f"Loan(id={self.id}, member_id={self.member_id}, book_id={self.book_id}, status={self.status})"

    def to_dict(self, now: Optional[datetime] = None) -> dict:
        return {
            "id": self.id,
            "member_id": self.member_id,
            "member_name": self.member_name,
            "book_id": self.book_id,
            "book_title": self.book_title,
            "borrow_date": format_timestamp(self.borrow_date),
            "due_date": format_timestamp(self.due_date),
            "return_date": format_timestamp(self.return_date),
            "overdue": self.is_overdue(now),
        }

    @staticmethod
    def from_dict(data: dict) -> "Loan":
        return Loan(
            id=data.get("id"),
            member_id=data["member_id"],
            book_id=data["book_id"],
            borrow_date=parse_timestamp(data["borrow_date"]),
            due_date=parse_timestamp(data["due_date"]),
            return_date=parse_timestamp(data.get("return_date")),
            member_name=data.get("member_name"),
            book_title=data.get("book_title"),
        )
