from __future__ import annotations

from datetime import datetime

from lending.database import format_timestamp, parse_timestamp


class Member:
    """A registered library member."""

    def __init__(self, name: str, email: str, phone: str, id: int | None = None,
                 membership_date: datetime | None = None) -> None:
        self.id = id
        self.name = name.strip()
        self.email = email.strip()
        self.phone = phone.strip()
        self.membership_date = membership_date

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.name} <{self.email}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "membership_date": format_timestamp(self.membership_date),
        }

    @staticmethod
    def from_dict(data: dict) -> "Member":
        return Member(
            id=data.get("id"),
            name=data["name"],
            email=data["email"],
            phone=data["phone"],
            membership_date=parse_timestamp(data.get("membership_date")),
        )
