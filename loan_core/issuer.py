"""Loan issuance: create a loan together with its repayment schedule."""

from __future__ import annotations

from datetime import date, datetime

from loan_core.config import ScheduleConfig
from loan_core.exceptions import ValidationError
from loan_core.logging import get_logger
from loan_core.models import Loan, LoanStatus, RepaymentStatus, ScheduledRepayment, User
from loan_core.schedule import due_dates, installment_amounts, to_date
from loan_core.store import LoanStore

logger = get_logger(__name__)


class LoanIssuer:
    """Issue loans and write their amortization schedules.

    Parameters
    ----------
    store : LoanStore
        Transactional store the loan and its installments are written to.
    config : ScheduleConfig | None
        Schedule settings; ``period_count`` fixes the installment divisor.
    """

    def __init__(self, store: LoanStore, config: ScheduleConfig | None = None) -> None:
        self.store = store
        self.config = config or ScheduleConfig()
        self.config.validate()

    def create_loan(
        self,
        user: User,
        amount: int,
        currency_code: str,
        terms: int,
        processed_at: date | datetime | str,
    ) -> Loan:
        """Create a loan and one scheduled repayment per term.

        Installment ``i`` falls due ``i`` calendar months after
        ``processed_at``. The loan row and every installment are written in
        one transaction; nothing is persisted if any write fails.

        Parameters
        ----------
        user : User
            Borrower.
        amount : int
            Principal in minor currency units.
        currency_code : str
            ISO 4217 code stored on the loan and its installments.
        terms : int
            Number of monthly installments.
        processed_at : date | datetime | str
            Issue date.

        Returns
        -------
        Loan
            The created loan with identity populated.

        Raises
        ------
        ValidationError
            If ``amount`` or ``terms`` is not positive.
        """
        if amount <= 0:
            raise ValidationError(f"Loan amount must be positive, got {amount}")
        if terms <= 0:
            raise ValidationError(f"Loan terms must be positive, got {terms}")

        issued_on = to_date(processed_at)
        amounts = installment_amounts(amount, terms, self.config.period_count)

        with self.store.transaction():
            loan = self.store.create(
                Loan,
                user_id=user.id,
                amount=amount,
                terms=terms,
                outstanding_amount=amount,
                currency_code=currency_code,
                processed_at=issued_on,
                status=LoanStatus.DUE,
                remaining_installments=terms,
            )
            for number, (installment, due_date) in enumerate(
                zip(amounts, due_dates(issued_on, terms)), start=1
            ):
                self.store.create(
                    ScheduledRepayment,
                    loan_id=loan.id,
                    installment_number=number,
                    amount=installment,
                    outstanding_amount=installment,
                    currency_code=currency_code,
                    due_date=due_date,
                    status=RepaymentStatus.DUE,
                )

        logger.info(
            "Issued loan %s: %d %s over %d terms for user %s",
            loan.id, amount, currency_code, terms, user.id,
        )
        return loan

    def schedule_for(self, loan: Loan) -> list[ScheduledRepayment]:
        """Return the loan's installments ordered by due date."""
        return self.store.query(
            ScheduledRepayment, order_by=("due_date", "installment_number"), loan_id=loan.id
        )
