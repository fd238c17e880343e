"""Authorization gate for the API.

Callers authenticate with an ``X-API-Key`` header. Each configured key maps
to a caller name and a role (see ``Settings.api_keys``). The resolved
``Caller`` is handed to route functions as an explicit value, and from
there to the core wherever an actor name is needed for audit stamps.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, HTTPException, Security
from fastapi.security import APIKeyHeader

from lending.config import settings

ADMIN = "ADMIN"
LIBRARIAN = "LIBRARIAN"
MEMBER = "MEMBER"
STAFF = (ADMIN, LIBRARIAN)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


@dataclass(frozen=True)
class Caller:
    name: str
    role: str


def resolve_caller(api_key: Optional[str]) -> Optional[Caller]:
    if not api_key:
        return None
    identity = settings.api_keys.get(api_key)
    if identity is None:
        return None
    name, role = identity
    return Caller(name=name, role=role)


def get_caller(api_key: Optional[str] = Security(api_key_header)) -> Caller:
    """Dependency that validates the API key."""
    caller = resolve_caller(api_key)
    if caller is None:
        raise HTTPException(status_code=401, detail="Could not validate credentials")
    return caller


def require_roles(*roles: str) -> Callable[..., Caller]:
    """Dependency factory: the caller must hold one of ``roles``."""
    allowed = {r.upper() for r in roles}

    def dependency(caller: Caller = Depends(get_caller)) -> Caller:
        if caller.role not in allowed:
            raise HTTPException(status_code=403, detail="Access denied")
        return caller

    return dependency
