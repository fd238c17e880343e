from datetime import datetime
from typing import Callable, Optional

from lending.catalog import BookLedger
from lending.config import settings
from lending.database import initialize_database, utcnow
from lending.loans import LoanManager, LoanQueries
from lending.members import MemberRegistry


class Library:
    """Wires the catalog, the roster and the loan components to one database."""

    def __init__(self, db_file: Optional[str] = None, clock: Callable[[], datetime] = utcnow,
                 loan_days: Optional[int] = None) -> None:
        self.db_file = db_file or settings.database_file
        self.clock = clock

        # Make sure the schema is current on every start
        initialize_database(self.db_file)

        self.books = BookLedger(self.db_file, clock=clock)
        self.members = MemberRegistry(self.db_file, clock=clock)
        self.loans = LoanManager(self.books, self.members, self.db_file, clock=clock, loan_days=loan_days)
        self.queries = LoanQueries(self.db_file, clock=clock)
