import os
from dataclasses import dataclass, field
from typing import Dict, Tuple

from dotenv import load_dotenv

load_dotenv()


def parse_api_keys(raw: str) -> Dict[str, Tuple[str, str]]:
    """Parse ``key=name:ROLE`` entries separated by commas.

    Malformed entries are skipped. Roles are upper-cased.
    """
    keys: Dict[str, Tuple[str, str]] = {}
    for entry in (raw or "").split(","):
        entry = entry.strip()
        if not entry or "=" not in entry:
            continue
        key, _, identity = entry.partition("=")
        name, _, role = identity.partition(":")
        if not key.strip() or not name.strip() or not role.strip():
            continue
        keys[key.strip()] = (name.strip(), role.strip().upper())
    return keys


@dataclass
class Settings:
    # API settings
    app_name: str = os.getenv("APP_NAME", "Library Lending API")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))

    # Database settings
    database_file: str = os.getenv("LIBRARY_DB_FILE", "library.db")
    database_timeout: float = float(os.getenv("DATABASE_TIMEOUT", "5"))  # seconds to wait for the write lock

    # Lending rules
    default_loan_days: int = int(os.getenv("DEFAULT_LOAN_DAYS", "14"))

    # Security: key=name:ROLE,key=name:ROLE
    api_keys_raw: str = os.getenv(
        "API_KEYS",
        "admin-secret-key=admin:ADMIN,librarian-secret-key=librarian:LIBRARIAN,member-secret-key=member:MEMBER",
    )
    api_keys: Dict[str, Tuple[str, str]] = field(default_factory=dict)

    # Application settings
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    debug: bool = os.getenv("DEBUG", "False").lower() in ("true", "1", "yes")

    def __post_init__(self) -> None:
        if not self.api_keys:
            self.api_keys = parse_api_keys(self.api_keys_raw)


settings = Settings()
