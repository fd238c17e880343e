import logging
import sqlite3
from datetime import datetime
from typing import Callable, List, Optional

from lending.database import format_timestamp, transaction, use_connection, utcnow
from lending.errors import ConflictError, InvalidOperationError, NotFoundError
from lending.member import Member

logger = logging.getLogger(__name__)


class MemberRegistry:
    """Owns the member roster."""

    def __init__(self, db_file: Optional[str] = None, clock: Callable[[], datetime] = utcnow) -> None:
        self.db_file = db_file
        self.clock = clock

    def get_member(self, member_id: int, conn: Optional[sqlite3.Connection] = None) -> Member:
        with use_connection(self.db_file, conn) as c:
            row = c.execute(
                "SELECT id, name, email, phone, membership_date FROM members WHERE id = ?", (member_id,)
            ).fetchone()
        if row is None:
            raise NotFoundError(f"Member not found with id: {member_id}")
        return Member.from_dict(dict(row))

    def member_exists(self, member_id: int, conn: Optional[sqlite3.Connection] = None) -> bool:
        with use_connection(self.db_file, conn) as c:
            row = c.execute("SELECT 1 FROM members WHERE id = ?", (member_id,)).fetchone()
        return row is not None

    def email_exists(self, email: str, conn: Optional[sqlite3.Connection] = None) -> bool:
        # email column is COLLATE NOCASE
        with use_connection(self.db_file, conn) as c:
            row = c.execute("SELECT 1 FROM members WHERE email = ?", (email.strip(),)).fetchone()
        return row is not None

    def count_active_loans(self, member_id: int, conn: Optional[sqlite3.Connection] = None) -> int:
        with use_connection(self.db_file, conn) as c:
            return c.execute(
                "SELECT COUNT(*) FROM loans WHERE member_id = ? AND return_date IS NULL", (member_id,)
            ).fetchone()[0]

    def list_members(self) -> List[Member]:
        with use_connection(self.db_file) as conn:
            rows = conn.execute(
                "SELECT id, name, email, phone, membership_date FROM members ORDER BY id"
            ).fetchall()
        return [Member.from_dict(dict(row)) for row in rows]

    def create_member(self, member: Member) -> Member:
        """Register a member; the membership date is stamped here."""
        with use_connection(self.db_file) as conn, transaction(conn):
            if self.email_exists(member.email, conn):
                raise ConflictError(f"Member with email already exists: {member.email}")
            try:
                cursor = conn.execute(
                    "INSERT INTO members (name, email, phone, membership_date) VALUES (?, ?, ?, ?)",
                    (member.name, member.email, member.phone, format_timestamp(self.clock())),
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError(f"Member with email already exists: {member.email}") from e
            created = self.get_member(cursor.lastrowid, conn)
        logger.info("Member %s registered", created.id)
        return created

    def delete_member(self, member_id: int) -> None:
        """Delete a member who has never borrowed. Loans are never deleted."""
        with use_connection(self.db_file) as conn, transaction(conn):
            self.get_member(member_id, conn)
            active = self.count_active_loans(member_id, conn)
            if active:
                logger.warning("Refused to delete member %s with %d active loan(s)", member_id, active)
                raise InvalidOperationError(
                    f"Cannot delete member with active loans. Member has {active} active loan(s)"
                )
            total = conn.execute("SELECT COUNT(*) FROM loans WHERE member_id = ?", (member_id,)).fetchone()[0]
            if total:
                logger.warning("Refused to delete member %s with %d loan(s) on record", member_id, total)
                raise InvalidOperationError(
                    f"Cannot delete member with loan history. Member has {total} loan(s) on record"
                )
            conn.execute("DELETE FROM members WHERE id = ?", (member_id,))
        logger.info("Member %s deleted", member_id)
