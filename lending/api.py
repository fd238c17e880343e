import logging
from contextlib import asynccontextmanager
from datetime import datetime
from http import HTTPStatus
from typing import List, Optional

from fastapi import Body, Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lending.auth import MEMBER, STAFF, Caller, get_caller, require_roles
from lending.book import Book
from lending.config import settings
from lending.database import get_db_connection
from lending.errors import ErrorKind, LibraryError
from lending.library import Library
from lending.member import Member
from lending.schemas import (
    BookCreateModel,
    BookImportModel,
    BookModel,
    BookUpdateModel,
    ErrorModel,
    LoanCreateModel,
    LoanModel,
    LoanReturnModel,
    MemberCreateModel,
    MemberModel,
)

logger = logging.getLogger(__name__)

_library: Optional[Library] = None


def get_library() -> Library:
    """Dependency returning the shared Library; tests override it."""
    global _library
    if _library is None:
        _library = Library()
    return _library


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    get_library()
    logger.info("%s %s started", settings.app_name, settings.app_version)
    yield


app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Error mapping ---
# The core only knows error kinds; status codes are decided here.
STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UNAVAILABLE: 400,
    ErrorKind.INVALID_OPERATION: 400,
}


def _error_response(status: int, error: str, detail: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content=ErrorModel(status=status, error=error, detail=detail).model_dump(),
        headers=headers,
    )


@app.exception_handler(LibraryError)
async def library_error_handler(request: Request, exc: LibraryError) -> JSONResponse:
    return _error_response(STATUS_BY_KIND.get(exc.kind, 400), exc.kind.value, exc.message)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    # LibraryError subclasses resolve to the handler above first
    return _error_response(400, "INVALID_INPUT", str(exc))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(exc.status_code, HTTPStatus(exc.status_code).name, str(exc.detail),
                           headers=getattr(exc, "headers", None))


def _loan_payload(loan, library: Library) -> dict:
    return loan.to_dict(now=library.clock())


# --- Health check ---
@app.get("/health")
def health(library: Library = Depends(get_library)):
    """Lightweight health endpoint with a quick database round trip."""
    db_ok = True
    try:
        conn = get_db_connection(library.db_file)
        try:
            conn.execute("SELECT 1")
        finally:
            conn.close()
    except Exception:
        logger.exception("Health check could not reach the database")
        db_ok = False
    return {
        "status": "healthy" if db_ok else "degraded",
        "timestamp": library.clock().isoformat(),
        "db": db_ok,
    }


# --- Books ---
@app.post("/api/books", response_model=BookModel, status_code=201)
def create_book(payload: BookCreateModel, caller: Caller = Depends(require_roles(*STAFF)),
                library: Library = Depends(get_library)):
    book = library.books.create_book(Book(**payload.model_dump()), actor=caller.name)
    return book.to_dict()


@app.post("/api/books/import", response_model=List[BookModel], status_code=201)
def import_books(payload: List[BookImportModel], caller: Caller = Depends(require_roles(*STAFF)),
                 library: Library = Depends(get_library)):
    books = [
        Book(title=item.title, author=item.author, isbn=item.isbn, genre=item.genre,
             publication_year=item.publication_year, copies_available=item.copies)
        for item in payload
    ]
    return [b.to_dict() for b in library.books.import_books(books, actor=caller.name)]


@app.get("/api/books", response_model=List[BookModel])
def list_books(caller: Caller = Depends(get_caller), library: Library = Depends(get_library)):
    return [b.to_dict() for b in library.books.list_books()]


@app.get("/api/books/{book_id}", response_model=BookModel)
def get_book(book_id: int, caller: Caller = Depends(get_caller), library: Library = Depends(get_library)):
    return library.books.get_book(book_id).to_dict()


@app.put("/api/books/{book_id}", response_model=BookModel)
def update_book(book_id: int, payload: BookUpdateModel, caller: Caller = Depends(require_roles(*STAFF)),
                library: Library = Depends(get_library)):
    book = library.books.update_book(book_id, actor=caller.name, **payload.model_dump())
    return book.to_dict()


@app.delete("/api/books/{book_id}", status_code=204)
def delete_book(book_id: int, caller: Caller = Depends(require_roles(*STAFF)),
                library: Library = Depends(get_library)):
    library.books.delete_book(book_id)
    return Response(status_code=204)


# --- Members ---
@app.post("/api/members", response_model=MemberModel, status_code=201)
def create_member(payload: MemberCreateModel, caller: Caller = Depends(require_roles(*STAFF)),
                  library: Library = Depends(get_library)):
    return library.members.create_member(Member(**payload.model_dump())).to_dict()


@app.get("/api/members", response_model=List[MemberModel])
def list_members(caller: Caller = Depends(require_roles(*STAFF)), library: Library = Depends(get_library)):
    return [m.to_dict() for m in library.members.list_members()]


@app.get("/api/members/{member_id}", response_model=MemberModel)
def get_member(member_id: int, caller: Caller = Depends(require_roles(*STAFF)),
               library: Library = Depends(get_library)):
    return library.members.get_member(member_id).to_dict()


@app.delete("/api/members/{member_id}", status_code=204)
def delete_member(member_id: int, caller: Caller = Depends(require_roles(*STAFF)),
                  library: Library = Depends(get_library)):
    library.members.delete_member(member_id)
    return Response(status_code=204)


@app.get("/api/members/{member_id}/loans", response_model=List[LoanModel])
def member_loan_history(member_id: int, caller: Caller = Depends(require_roles(*STAFF, MEMBER)),
                        library: Library = Depends(get_library)):
    return [_loan_payload(loan, library) for loan in library.loans.member_loan_history(member_id)]


# --- Loans ---
@app.post("/api/loans", response_model=LoanModel, status_code=201)
def borrow_book(payload: LoanCreateModel, caller: Caller = Depends(require_roles(*STAFF)),
                library: Library = Depends(get_library)):
    loan = library.loans.borrow(payload.member_id, payload.book_id, due_date=payload.due_date)
    return _loan_payload(loan, library)


@app.patch("/api/loans/{loan_id}/return", response_model=LoanModel)
def return_book(loan_id: int, payload: Optional[LoanReturnModel] = Body(None),
                caller: Caller = Depends(require_roles(*STAFF)), library: Library = Depends(get_library)):
    return_date: Optional[datetime] = payload.return_date if payload else None
    loan = library.loans.return_loan(loan_id, return_date=return_date)
    return _loan_payload(loan, library)


@app.get("/api/loans/overdue", response_model=List[LoanModel])
def overdue_loans(caller: Caller = Depends(require_roles(*STAFF)), library: Library = Depends(get_library)):
    return [_loan_payload(loan, library) for loan in library.queries.list_overdue()]


@app.get("/api/loans/active", response_model=List[LoanModel])
def active_loans(caller: Caller = Depends(require_roles(*STAFF)), library: Library = Depends(get_library)):
    return [_loan_payload(loan, library) for loan in library.queries.list_active()]


@app.get("/api/loans/{loan_id}", response_model=LoanModel)
def get_loan(loan_id: int, caller: Caller = Depends(require_roles(*STAFF)),
             library: Library = Depends(get_library)):
    return _loan_payload(library.loans.get_loan(loan_id), library)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
