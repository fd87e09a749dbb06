"""
Book inventory ledger.

Owns the stock counters of every book. Each mutation is one conditional
UPDATE, so the check and the write happen atomically in the database and
two concurrent reservations can never both take the last free copy.
The ledger never commits: the caller's transaction decides.
"""

import logging

from sqlalchemy import case, update
from sqlalchemy.orm import Session

from .errors import BookNotFound, InsufficientStock, InvalidStock
from .models import Book

logger = logging.getLogger(__name__)


def _fully_rented(on_loan):
    return case((on_loan >= Book.total_stock, True), else_=False)


class InventoryLedger:
    def __init__(self, session: Session):
        self.session = session

    def _execute(self, stmt):
        return self.session.execute(
            stmt, execution_options={"synchronize_session": False}
        )

    def _fresh(self, book_id):
        return self.session.get(Book, book_id, populate_existing=True)

    def _require(self, book_id):
        book = self._fresh(book_id)
        if book is None:
            raise BookNotFound()
        return book

    def reserve(self, book_id) -> Book:
        """Take one copy of the book out of stock."""
        self.session.flush()
        new_count = Book.on_loan_count + 1
        stmt = (
            update(Book)
            .where(Book.id == book_id, Book.on_loan_count < Book.total_stock)
            .values(on_loan_count=new_count, is_fully_rented=_fully_rented(new_count))
        )
        if self._execute(stmt).rowcount == 0:
            self._require(book_id)
            logger.info("Reserve refused for book %s: no copies available", book_id)
            raise InsufficientStock()

        book = self._fresh(book_id)
        logger.info(
            "Reserved book %s (%s/%s on loan)",
            book_id,
            book.on_loan_count,
            book.total_stock,
        )
        return book

    def release(self, book_id) -> Book:
        """Put one copy back. Never drops below zero."""
        self.session.flush()
        new_count = Book.on_loan_count - 1
        stmt = (
            update(Book)
            .where(Book.id == book_id, Book.on_loan_count > 0)
            .values(on_loan_count=new_count, is_fully_rented=_fully_rented(new_count))
        )
        if self._execute(stmt).rowcount == 0:
            self._require(book_id)
            logger.warning("Release without matching reserve for book %s", book_id)
            self._execute(
                update(Book)
                .where(Book.id == book_id)
                .values(is_fully_rented=_fully_rented(Book.on_loan_count))
            )

        book = self._fresh(book_id)
        logger.info(
            "Released book %s (%s/%s on loan)",
            book_id,
            book.on_loan_count,
            book.total_stock,
        )
        return book

    def set_total_stock(self, book_id, new_total) -> Book:
        """
        Change the number of copies owned.

        Refuses negative totals and totals below the copies currently on
        loan; the fully-rented flag is recomputed in the same statement.
        """
        if new_total is None or new_total < 0:
            raise InvalidStock("Stock quantity cannot be negative")

        self.session.flush()
        stmt = (
            update(Book)
            .where(Book.id == book_id, Book.on_loan_count <= new_total)
            .values(
                total_stock=new_total,
                is_fully_rented=case(
                    (Book.on_loan_count >= new_total, True), else_=False
                ),
            )
        )
        if self._execute(stmt).rowcount == 0:
            book = self._require(book_id)
            raise InvalidStock(
                f"Stock cannot be lower than the {book.on_loan_count} copies on loan"
            )

        book = self._fresh(book_id)
        logger.info("Stock of book %s set to %s", book_id, new_total)
        return book
