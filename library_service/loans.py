"""
Loan state machine.

    create            -> active            (reserves one copy)
    active  --return  -> returned          (releases one copy)
    overdue --return  -> returned          (releases one copy)
    active  --sweep   -> overdue           (see sweeper.py)

returned is terminal. Every transition into returned is a conditional
UPDATE on the stored status, so the release fires exactly once per loan
no matter how many return requests race each other or the sweeper.
"""

import logging
from datetime import date, datetime, timezone
from typing import Callable, Optional

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from .db import transaction
from .errors import AlreadyReturned, InvalidInput, InvalidTransition
from .ledger import InventoryLedger
from .models import OPEN_STATUSES, Loan, LoanStatus
from .repositories import ClientRepository, LoanRepository

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class LoanService:
    def __init__(self, session: Session, clock: Callable[[], date] = utc_today):
        self.session = session
        self.clock = clock
        self.ledger = InventoryLedger(session)
        self.loans = LoanRepository(session)
        self.clients = ClientRepository(session)

    def _reload(self, loan_id) -> Loan:
        self.session.expire_all()
        return self.loans.get_or_raise(loan_id)

    def create(self, book_id, client_id, due_date: date) -> Loan:
        today = self.clock()
        if due_date < today:
            raise InvalidInput("Return date cannot be in the past")

        with transaction(self.session):
            self.clients.get_or_raise(client_id)
            # The ledger is the only stock check; it raises when no copy is free
            self.ledger.reserve(book_id)
            loan = Loan(
                book_id=book_id,
                client_id=client_id,
                loan_date=today,
                due_date=due_date,
                status=LoanStatus.ACTIVE,
            )
            self.loans.add(loan)
            self.session.flush()
            loan_id = loan.id

        logger.info(
            "Created loan %s: book %s to client %s, due %s",
            loan_id,
            book_id,
            client_id,
            due_date,
        )
        return self._reload(loan_id)

    def _close(self, loan: Loan, returned_on: date) -> None:
        if returned_on < loan.loan_date:
            raise InvalidInput("Return date cannot be earlier than the loan date")

        stmt = (
            update(Loan)
            .where(Loan.id == loan.id, Loan.status.in_(OPEN_STATUSES))
            .values(status=LoanStatus.RETURNED, actual_return_date=returned_on)
        )
        result = self.session.execute(
            stmt, execution_options={"synchronize_session": False}
        )
        if result.rowcount == 0:
            raise AlreadyReturned()

        self.ledger.release(loan.book_id)
        logger.info("Loan %s returned on %s", loan.id, returned_on)

    def return_loan(self, loan_id, actual_date: Optional[date] = None) -> Loan:
        with transaction(self.session):
            loan = self.loans.get_or_raise(loan_id)
            if loan.status == LoanStatus.RETURNED:
                raise AlreadyReturned()
            self._close(loan, actual_date or self.clock())

        return self._reload(loan_id)

    def update(
        self,
        loan_id,
        due_date: Optional[date] = None,
        status: Optional[LoanStatus] = None,
    ) -> Loan:
        """
        Edit a loan's due date and/or move it to returned.

        Decisions are keyed off the stored status, never the requested one.
        """
        with transaction(self.session):
            loan = self.loans.get_or_raise(loan_id)
            current = loan.status

            if current == LoanStatus.RETURNED:
                if status == LoanStatus.RETURNED:
                    raise AlreadyReturned()
                raise InvalidTransition("Cannot change a returned loan")

            if due_date is not None:
                if current != LoanStatus.ACTIVE:
                    raise InvalidTransition("Only active loans can change their return date")
                if due_date < self.clock():
                    raise InvalidInput("Invalid return date for an active loan")
                loan.due_date = due_date
                self.session.flush()
                logger.info("Loan %s due date moved to %s", loan_id, due_date)

            if status is not None and status != current:
                if status != LoanStatus.RETURNED:
                    raise InvalidTransition(
                        f"Cannot move a loan from {current.value} to {status.value}"
                    )
                self._close(loan, self.clock())

        return self._reload(loan_id)

    def delete(self, loan_id) -> None:
        with transaction(self.session):
            loan = self.loans.get_or_raise(loan_id)
            book_id = loan.book_id
            # An open loan still holds a copy; give it back before the row goes
            closed = self.session.execute(
                delete(Loan).where(Loan.id == loan_id, Loan.status.in_(OPEN_STATUSES)),
                execution_options={"synchronize_session": False},
            )
            if closed.rowcount:
                self.ledger.release(book_id)
            else:
                self.session.execute(
                    delete(Loan).where(Loan.id == loan_id),
                    execution_options={"synchronize_session": False},
                )
            self.session.expunge(loan)

        logger.info("Deleted loan %s", loan_id)
