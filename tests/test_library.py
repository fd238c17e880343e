import pytest

from lending.book import Book, normalize_isbn
from lending.errors import ConflictError, InvalidOperationError, NotFoundError
from lending.library import Library
from lending.member import Member


def new_book(isbn="978-0-13-110362-7", copies=2, title="The C Programming Language"):
    return Book(title=title, author="Kernighan & Ritchie", isbn=isbn, genre="Programming",
                publication_year=1988, copies_available=copies)


# ------------------------- Books ------------------------- #
def test_create_book_stamps_audit_fields(lib, clock):
    book = lib.books.create_book(new_book(), actor="librarian")

    assert book.id is not None
    assert book.isbn == "9780131103627"
    assert book.created_by == "librarian"
    assert book.updated_by == "librarian"
    assert book.created_at == clock.now
    assert lib.books.get_book(book.id).title == "The C Programming Language"


def test_normalize_isbn():
    assert normalize_isbn(" 0-306-40615-x ") == "030640615X"
    assert normalize_isbn(None) == ""


def test_duplicate_isbn_is_rejected(lib):
    lib.books.create_book(new_book())

    with pytest.raises(ConflictError, match="ISBN already exists"):
        lib.books.create_book(new_book(isbn="9780131103627", title="Another Printing"))

    assert len(lib.books.list_books()) == 1


def test_blank_isbn_is_rejected(lib):
    with pytest.raises(ValueError):
        lib.books.create_book(new_book(isbn="  "))


def test_negative_copies_are_rejected_on_create_and_import(lib):
    with pytest.raises(ValueError, match="cannot be negative"):
        lib.books.create_book(new_book(copies=-1))

    with pytest.raises(ValueError, match="cannot be negative"):
        lib.books.import_books([new_book(isbn="9780000000001"), new_book(isbn="9780000000002", copies=-3)])

    assert lib.books.list_books() == []


def test_import_skips_existing_and_repeated_isbns(lib):
    lib.books.create_book(new_book(isbn="9780000000001"))

    imported = lib.books.import_books(
        [
            new_book(isbn="9780000000001", title="Already Here"),
            new_book(isbn="9780000000002", title="Fresh"),
            new_book(isbn="978-0000000002", title="Fresh Again"),
            new_book(isbn="9780000000003", title="Also Fresh"),
        ],
        actor="admin",
    )

    assert [b.title for b in imported] == ["Fresh", "Also Fresh"]
    assert all(b.created_by == "admin" for b in imported)
    assert len(lib.books.list_books()) == 3


def test_update_book_overwrites_fields(lib, clock):
    book = lib.books.create_book(new_book(), actor="librarian")
    clock.advance(hours=1)

    updated = lib.books.update_book(
        book.id, title="K&R", author="Brian Kernighan", genre="Computing",
        publication_year=1978, copies_available=5, actor="admin",
    )

    assert updated.title == "K&R"
    assert updated.copies_available == 5
    assert updated.isbn == book.isbn
    assert updated.created_by == "librarian"
    assert updated.updated_by == "admin"
    assert updated.updated_at == clock.now


def test_update_book_rejects_negative_copies(lib):
    book = lib.books.create_book(new_book())

    with pytest.raises(ValueError):
        lib.books.update_book(book.id, title="x", author="y", genre="zzz",
                              publication_year=2000, copies_available=-1)


def test_update_unknown_book(lib):
    with pytest.raises(NotFoundError):
        lib.books.update_book(99, title="x", author="y", genre="zzz",
                              publication_year=2000, copies_available=1)


def test_delete_book(lib, make_book, make_member):
    with pytest.raises(NotFoundError):
        lib.books.delete_book(99)

    book = make_book()
    member = make_member()
    loan = lib.loans.borrow(member.id, book.id)

    with pytest.raises(InvalidOperationError, match="1 active loan"):
        lib.books.delete_book(book.id)

    lib.loans.return_loan(loan.id)

    with pytest.raises(InvalidOperationError, match=r"Book has 1 loan\(s\) on record"):
        lib.books.delete_book(book.id)

    assert lib.books.book_exists(book.id)
    assert [l.book_id for l in lib.loans.member_loan_history(member.id)] == [book.id]


def test_delete_book_never_lent(lib, make_book):
    book = make_book()

    lib.books.delete_book(book.id)

    assert not lib.books.book_exists(book.id)
    assert lib.books.list_books() == []


# ------------------------- Members ------------------------- #
def test_create_member_stamps_membership_date(lib, clock):
    member = lib.members.create_member(Member(name="Grace Hopper", email="grace@example.com", phone="555-123-4567"))

    assert member.id is not None
    assert member.membership_date == clock.now
    assert lib.members.member_exists(member.id)


def test_duplicate_email_ignores_case(lib):
    lib.members.create_member(Member(name="Grace Hopper", email="grace@example.com", phone="555-123-4567"))

    with pytest.raises(ConflictError, match="email already exists"):
        lib.members.create_member(Member(name="G. Hopper", email="Grace@Example.com", phone="555-765-4321"))


def test_get_unknown_member(lib):
    with pytest.raises(NotFoundError, match="Member not found with id: 5"):
        lib.members.get_member(5)


def test_delete_member_with_active_loans(lib, make_book, make_member):
    book = make_book(copies=2)
    member = make_member()
    loan = lib.loans.borrow(member.id, book.id)
    assert lib.members.count_active_loans(member.id) == 1

    with pytest.raises(InvalidOperationError, match="Member has 1 active loan"):
        lib.members.delete_member(member.id)

    lib.loans.return_loan(loan.id)
    assert lib.members.count_active_loans(member.id) == 0

    with pytest.raises(InvalidOperationError, match=r"Member has 1 loan\(s\) on record"):
        lib.members.delete_member(member.id)

    assert lib.members.member_exists(member.id)
    assert len(lib.loans.member_loan_history(member.id)) == 1


def test_delete_member_without_loans(lib, make_member):
    member = make_member()

    lib.members.delete_member(member.id)

    assert not lib.members.member_exists(member.id)
    assert lib.members.list_members() == []


# ------------------------- Persistence ------------------------- #
def test_state_survives_a_new_library_instance(lib, clock, make_book, make_member):
    book = make_book(copies=2)
    member = make_member()
    loan = lib.loans.borrow(member.id, book.id)

    reopened = Library(db_file=lib.db_file, clock=clock)

    assert reopened.books.get_book(book.id).copies_available == 1
    assert reopened.members.get_member(member.id).email == member.email
    assert [l.id for l in reopened.queries.list_active()] == [loan.id]
    assert reopened.loans.get_loan(loan.id).due_date == loan.due_date
