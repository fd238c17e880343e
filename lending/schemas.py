"""
Request and response schemas for the Library Lending API.

Request models validate input at the boundary; response models mirror the
``to_dict`` output of the core records.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from lending.database import to_utc

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# --- Books ---
class BookCreateModel(BaseModel):
    title: str = Field(..., min_length=1, max_length=200, description="Book title")
    author: str = Field(..., min_length=1, max_length=200, description="Primary author")
    isbn: str = Field(..., min_length=1, description="ISBN identifier")
    genre: str = Field(..., min_length=3, max_length=100, description="Category/Genre")
    publication_year: int = Field(..., ge=1000, le=2100)
    copies_available: int = Field(..., ge=0, description="Copies currently available")


class BookImportModel(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    author: str = Field(..., min_length=1, max_length=200)
    isbn: str = Field(..., min_length=1)
    genre: str = Field(..., min_length=3, max_length=100)
    publication_year: int = Field(..., ge=1000, le=2100)
    copies: int = Field(..., ge=0, description="Number of copies to put on the shelf")


class BookUpdateModel(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    author: str = Field(..., min_length=1, max_length=200)
    genre: str = Field(..., min_length=3, max_length=100)
    publication_year: int = Field(..., ge=1000, le=2100)
    copies_available: int = Field(..., ge=0)


class BookModel(BaseModel):
    id: int
    title: str
    author: str
    isbn: str
    genre: str
    publication_year: int
    copies_available: int
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None


# --- Members ---
class MemberCreateModel(BaseModel):
    name: str = Field(..., min_length=3, max_length=100, description="Full name")
    email: str = Field(..., pattern=EMAIL_PATTERN, description="Email address")
    phone: str = Field(..., min_length=10, max_length=20, description="Phone number")


class MemberModel(BaseModel):
    id: int
    name: str
    email: str
    phone: str
    membership_date: datetime


# --- Loans ---
class LoanCreateModel(BaseModel):
    member_id: int
    book_id: int
    due_date: Optional[datetime] = Field(None, description="Defaults to 14 days after borrowing")

    @field_validator("due_date")
    @classmethod
    def _due_date_in_range(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_utc(value) if value is not None else None


class LoanReturnModel(BaseModel):
    return_date: Optional[datetime] = Field(None, description="Defaults to now")

    @field_validator("return_date")
    @classmethod
    def _return_date_in_range(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_utc(value) if value is not None else None


class LoanModel(BaseModel):
    id: int
    member_id: int
    member_name: Optional[str] = None
    book_id: int
    book_title: Optional[str] = None
    borrow_date: datetime
    due_date: datetime
    return_date: Optional[datetime] = None
    overdue: bool


class ErrorModel(BaseModel):
    status: int
    error: str
    detail: str
