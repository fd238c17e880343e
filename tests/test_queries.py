from datetime import datetime, timedelta, timezone


def test_overdue_scenario(lib, clock, make_book, make_member):
    book = make_book()
    member = make_member()
    loan = lib.loans.borrow(member.id, book.id, due_date=clock.now - timedelta(days=1))

    overdue = lib.queries.list_overdue()
    assert [l.id for l in overdue] == [loan.id]
    assert overdue[0].is_overdue(clock.now) is True

    returned = lib.loans.return_loan(loan.id)

    assert lib.queries.list_overdue() == []
    assert returned.is_overdue(clock.now) is False


def test_loan_due_exactly_now_is_not_overdue(lib, clock, make_book, make_member):
    book = make_book()
    member = make_member()
    loan = lib.loans.borrow(member.id, book.id, due_date=clock.now)

    assert lib.queries.list_overdue() == []
    assert loan.is_overdue(clock.now) is False

    clock.advance(microseconds=1)
    assert [l.id for l in lib.queries.list_overdue()] == [loan.id]


def test_default_due_date_becomes_overdue_after_fourteen_days(lib, clock, make_book, make_member):
    book = make_book()
    member = make_member()
    loan = lib.loans.borrow(member.id, book.id)

    clock.advance(days=14)
    assert lib.queries.list_overdue() == []

    clock.advance(minutes=1)
    assert [l.id for l in lib.queries.list_overdue()] == [loan.id]


def test_overdue_compares_due_dates_across_timezones(lib, clock, make_book, make_member):
    # clock is 09:30 UTC; 10:00+02:00 is 08:00 UTC
    plus_two = timezone(timedelta(hours=2))
    book = make_book(copies=2)
    late = make_member()
    fine = make_member()
    overdue_loan = lib.loans.borrow(late.id, book.id, due_date=datetime(2025, 3, 1, 10, 0, tzinfo=plus_two))
    lib.loans.borrow(fine.id, book.id, due_date=datetime(2025, 3, 1, 12, 0, tzinfo=plus_two))

    assert [l.id for l in lib.queries.list_overdue()] == [overdue_loan.id]


def test_active_lists_only_unreturned_loans(lib, make_book, make_member):
    book = make_book(copies=3)
    m1, m2, m3 = make_member(), make_member(), make_member()
    l1 = lib.loans.borrow(m1.id, book.id)
    l2 = lib.loans.borrow(m2.id, book.id)
    l3 = lib.loans.borrow(m3.id, book.id)
    lib.loans.return_loan(l2.id)

    active = lib.queries.list_active()

    assert [l.id for l in active] == [l1.id, l3.id]
    assert all(l.return_date is None for l in active)
    assert active[0].book_title == book.title


def test_queries_on_empty_library(lib):
    assert lib.queries.list_active() == []
    assert lib.queries.list_overdue() == []
