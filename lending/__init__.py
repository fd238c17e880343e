"""Library Lending - Core Application Package

This package contains the core application modules including:
- Book catalog ledger (catalog.py)
- Member registry (members.py)
- Loan lifecycle and overdue/active queries (loans.py)
- Library facade (library.py)
- Database layer (database.py)
- API endpoints (api.py)
- CLI interface (main.py)
"""

__version__ = "1.0.0"
