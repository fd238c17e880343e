"""Error kinds raised by the lending core.

The core never decides transport status codes; it raises one of the
exceptions below and the boundary layer (``api.py``, ``main.py``) maps the
``kind`` to whatever its transport needs.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    UNAVAILABLE = "UNAVAILABLE"
    INVALID_OPERATION = "INVALID_OPERATION"


class LibraryError(Exception):
    """Base class for business-rule violations. Never retried."""

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(LibraryError, LookupError):
    """Referenced member, book or loan does not exist."""

    kind = ErrorKind.NOT_FOUND


class ConflictError(LibraryError, ValueError):
    """Duplicate ISBN, duplicate email or a second active loan for a pair."""

    kind = ErrorKind.CONFLICT


class UnavailableError(LibraryError, ValueError):
    """Borrow requested while no copies are available."""

    kind = ErrorKind.UNAVAILABLE


class InvalidOperationError(LibraryError, ValueError):
    """Operation not allowed in the current state (e.g. already returned)."""

    kind = ErrorKind.INVALID_OPERATION
