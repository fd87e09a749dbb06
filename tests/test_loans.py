"""Tests for the loan state machine (LoanService)."""

import threading
from datetime import timedelta

import pytest

from conftest import fixed_clock
from library_service.errors import (
    AlreadyReturned,
    BookNotFound,
    ClientNotFound,
    InsufficientStock,
    InvalidInput,
    InvalidTransition,
    LoanNotFound,
)
from library_service.loans import LoanService
from library_service.models import Book, Loan, LoanStatus


@pytest.fixture
def service(session, today):
    return LoanService(session, clock=fixed_clock(today))


def stock(session, book_id):
    session.expire_all()
    book = session.get(Book, book_id)
    return book.on_loan_count, book.is_fully_rented


class TestCreate:
    def test_create_active_loan(self, session, service, make_book, make_client, today):
        book_id = make_book(total_stock=2)
        client_id = make_client()

        loan = service.create(book_id, client_id, today + timedelta(days=14))

        assert loan.id is not None
        assert loan.status == LoanStatus.ACTIVE
        assert loan.loan_date == today
        assert loan.due_date == today + timedelta(days=14)
        assert loan.actual_return_date is None
        assert loan.book.title == "Test Book"
        assert loan.client.id == client_id
        assert stock(session, book_id) == (1, False)

    def test_due_today_is_accepted(self, service, make_book, make_client, today):
        loan = service.create(make_book(), make_client(), today)
        assert loan.due_date == today

    def test_past_due_date_rejected_without_mutation(
        self, session, service, make_book, make_client, today
    ):
        book_id = make_book(total_stock=1)

        with pytest.raises(InvalidInput):
            service.create(book_id, make_client(), today - timedelta(days=1))

        assert stock(session, book_id) == (0, False)
        assert session.query(Loan).count() == 0

    def test_missing_client_does_not_reserve(self, session, service, make_book, today):
        book_id = make_book(total_stock=1)

        with pytest.raises(ClientNotFound):
            service.create(book_id, 999, today + timedelta(days=7))

        assert stock(session, book_id) == (0, False)

    def test_missing_book(self, service, make_client, today):
        with pytest.raises(BookNotFound):
            service.create(999, make_client(), today + timedelta(days=7))

    def test_full_book_rejected_without_mutation(
        self, session, service, make_book, make_client, today
    ):
        book_id = make_book(total_stock=1)
        client_id = make_client()
        service.create(book_id, client_id, today + timedelta(days=7))

        with pytest.raises(InsufficientStock):
            service.create(book_id, client_id, today + timedelta(days=7))

        assert stock(session, book_id) == (1, True)
        assert session.query(Loan).count() == 1


class TestReturn:
    def test_return_releases_stock(self, session, service, make_book, make_client, today):
        book_id = make_book(total_stock=1)
        loan = service.create(book_id, make_client(), today + timedelta(days=7))

        returned = service.return_loan(loan.id)

        assert returned.status == LoanStatus.RETURNED
        assert returned.actual_return_date == today
        assert stock(session, book_id) == (0, False)

    def test_return_with_explicit_date(self, service, make_book, make_client, today):
        loan = service.create(make_book(), make_client(), today + timedelta(days=7))

        returned = service.return_loan(loan.id, today + timedelta(days=3))

        assert returned.actual_return_date == today + timedelta(days=3)

    def test_return_before_loan_date_rejected(
        self, session, service, make_book, make_client, today
    ):
        book_id = make_book()
        loan = service.create(book_id, make_client(), today + timedelta(days=7))

        with pytest.raises(InvalidInput):
            service.return_loan(loan.id, today - timedelta(days=1))

        assert service.loans.get(loan.id).status == LoanStatus.ACTIVE
        assert stock(session, book_id) == (1, True)

    def test_second_return_fails_and_releases_once(
        self, session, service, make_book, make_client, today
    ):
        book_id = make_book(total_stock=2)
        client_id = make_client()
        first = service.create(book_id, client_id, today + timedelta(days=7))
        service.create(book_id, client_id, today + timedelta(days=7))

        service.return_loan(first.id)
        with pytest.raises(AlreadyReturned):
            service.return_loan(first.id)

        assert stock(session, book_id) == (1, False)

    def test_return_overdue_loan(
        self, session, service, make_book, make_client, make_loan, today
    ):
        book_id = make_book(total_stock=1)
        loan_id = make_loan(
            book_id,
            make_client(),
            loan_date=today - timedelta(days=30),
            due_date=today - timedelta(days=10),
            status=LoanStatus.OVERDUE,
        )

        returned = service.return_loan(loan_id)

        assert returned.status == LoanStatus.RETURNED
        assert stock(session, book_id) == (0, False)

    def test_return_missing_loan(self, service):
        with pytest.raises(LoanNotFound):
            service.return_loan(999)


class TestUpdate:
    def test_extend_due_date_while_active(self, service, make_book, make_client, today):
        loan = service.create(make_book(), make_client(), today + timedelta(days=7))

        updated = service.update(loan.id, due_date=today + timedelta(days=21))

        assert updated.due_date == today + timedelta(days=21)
        assert updated.status == LoanStatus.ACTIVE

    def test_due_date_in_past_rejected(self, service, make_book, make_client, today):
        loan = service.create(make_book(), make_client(), today + timedelta(days=7))

        with pytest.raises(InvalidInput):
            service.update(loan.id, due_date=today - timedelta(days=1))

        assert service.loans.get(loan.id).due_date == today + timedelta(days=7)

    def test_due_date_of_overdue_loan_rejected(
        self, service, make_book, make_client, make_loan, today
    ):
        loan_id = make_loan(
            make_book(),
            make_client(),
            loan_date=today - timedelta(days=30),
            due_date=today - timedelta(days=10),
            status=LoanStatus.OVERDUE,
        )

        with pytest.raises(InvalidTransition):
            service.update(loan_id, due_date=today + timedelta(days=5))

    def test_active_to_active_is_noop(self, session, service, make_book, make_client, today):
        book_id = make_book()
        loan = service.create(book_id, make_client(), today + timedelta(days=7))

        updated = service.update(loan.id, status=LoanStatus.ACTIVE)

        assert updated.status == LoanStatus.ACTIVE
        assert stock(session, book_id) == (1, True)

    def test_status_returned_releases_once(
        self, session, service, make_book, make_client, make_loan, today
    ):
        book_id = make_book(total_stock=1)
        loan_id = make_loan(
            book_id,
            make_client(),
            loan_date=today - timedelta(days=30),
            due_date=today - timedelta(days=10),
            status=LoanStatus.OVERDUE,
        )

        updated = service.update(loan_id, status=LoanStatus.RETURNED)
        assert updated.status == LoanStatus.RETURNED
        assert updated.actual_return_date == today

        with pytest.raises(AlreadyReturned):
            service.update(loan_id, status=LoanStatus.RETURNED)
        assert stock(session, book_id) == (0, False)

    def test_returned_loan_cannot_reopen(self, service, make_book, make_client, today):
        loan = service.create(make_book(), make_client(), today + timedelta(days=7))
        service.return_loan(loan.id)

        with pytest.raises(InvalidTransition):
            service.update(loan.id, status=LoanStatus.ACTIVE)
        with pytest.raises(InvalidTransition):
            service.update(loan.id, due_date=today + timedelta(days=30))

        assert service.loans.get(loan.id).status == LoanStatus.RETURNED

    def test_overdue_cannot_go_back_to_active(
        self, service, make_book, make_client, make_loan, today
    ):
        loan_id = make_loan(
            make_book(),
            make_client(),
            loan_date=today - timedelta(days=30),
            due_date=today - timedelta(days=10),
            status=LoanStatus.OVERDUE,
        )

        with pytest.raises(InvalidTransition):
            service.update(loan_id, status=LoanStatus.ACTIVE)

    def test_active_cannot_be_marked_overdue_by_hand(
        self, service, make_book, make_client, today
    ):
        loan = service.create(make_book(), make_client(), today + timedelta(days=7))

        with pytest.raises(InvalidTransition):
            service.update(loan.id, status=LoanStatus.OVERDUE)


class TestDelete:
    def test_delete_open_loan_releases_stock(
        self, session, service, make_book, make_client, today
    ):
        book_id = make_book(total_stock=1)
        loan = service.create(book_id, make_client(), today + timedelta(days=7))

        service.delete(loan.id)

        assert session.query(Loan).count() == 0
        assert stock(session, book_id) == (0, False)

    def test_delete_returned_loan_leaves_stock(
        self, session, service, make_book, make_client, today
    ):
        book_id = make_book(total_stock=2)
        client_id = make_client()
        kept = service.create(book_id, client_id, today + timedelta(days=7))
        done = service.create(book_id, client_id, today + timedelta(days=7))
        service.return_loan(done.id)

        service.delete(done.id)

        assert service.loans.get(kept.id) is not None
        assert stock(session, book_id) == (1, False)

    def test_delete_missing_loan(self, service):
        with pytest.raises(LoanNotFound):
            service.delete(999)


def test_stock_scenario_single_copy(session, service, make_book, make_client, today):
    book_id = make_book(total_stock=1)
    client_id = make_client()
    due = today + timedelta(days=7)

    first = service.create(book_id, client_id, due)
    assert stock(session, book_id) == (1, True)

    with pytest.raises(InsufficientStock):
        service.create(book_id, client_id, due)

    service.return_loan(first.id)
    assert stock(session, book_id) == (0, False)

    second = service.create(book_id, client_id, due)
    assert second.status == LoanStatus.ACTIVE
    assert stock(session, book_id) == (1, True)


def test_concurrent_creates_take_one_copy(session_factory, make_book, make_client, today):
    book_id = make_book(total_stock=1)
    client_id = make_client()
    workers = 8
    barrier = threading.Barrier(workers)
    results = []
    lock = threading.Lock()

    def attempt():
        worker_session = session_factory()
        try:
            service = LoanService(worker_session, clock=fixed_clock(today))
            barrier.wait()
            try:
                service.create(book_id, client_id, today + timedelta(days=7))
                outcome = "ok"
            except InsufficientStock:
                outcome = "insufficient"
            with lock:
                results.append(outcome)
        finally:
            worker_session.close()

    threads = [threading.Thread(target=attempt) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count("ok") == 1
    assert results.count("insufficient") == workers - 1

    check = session_factory()
    try:
        book = check.get(Book, book_id)
        assert (book.on_loan_count, book.is_fully_rented) == (1, True)
        assert check.query(Loan).count() == 1
    finally:
        check.close()
