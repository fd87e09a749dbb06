import logging
from datetime import date, datetime
from typing import List, Optional, Union

from sqlalchemy import update
from sqlalchemy.orm import Session

from .db import transaction
from .loans import utc_today
from .models import Loan, LoanStatus
from .repositories import LoanRepository

logger = logging.getLogger(__name__)


class OverdueSweeper:
    """Promotes active loans whose due date has passed to overdue."""

    def __init__(self, session: Session):
        self.session = session
        self.loans = LoanRepository(session)

    def sweep(self, now: Optional[Union[date, datetime]] = None) -> List[Loan]:
        """
        Mark every active loan due before ``now`` as overdue.

        Returns only the loans promoted by this call. Stock is never
        touched, and a loan returned while the sweep runs stays returned:
        each promotion is conditional on the row still being active.
        """
        if now is None:
            today = utc_today()
        elif isinstance(now, datetime):
            today = now.date()
        else:
            today = now

        promoted = []
        with transaction(self.session):
            for loan in self.loans.overdue_candidates(today):
                stmt = (
                    update(Loan)
                    .where(Loan.id == loan.id, Loan.status == LoanStatus.ACTIVE)
                    .values(status=LoanStatus.OVERDUE)
                )
                result = self.session.execute(
                    stmt, execution_options={"synchronize_session": False}
                )
                if result.rowcount:
                    logger.info("Loan %s is overdue (due %s)", loan.id, loan.due_date)
                    promoted.append(loan.id)

        logger.info("Overdue sweep at %s promoted %d loan(s)", today, len(promoted))
        if not promoted:
            return []
        self.session.expire_all()
        return self.loans.list(Loan.id.in_(promoted))
