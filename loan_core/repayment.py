"""Repayment application: allocate received payments to a loan's schedule."""

from __future__ import annotations

from datetime import date, datetime

from loan_core.config import ScheduleConfig
from loan_core.exceptions import LoanNotDueError, ValidationError
from loan_core.logging import get_logger
from loan_core.models import (
    Loan,
    LoanStatus,
    ReceivedRepayment,
    RepaymentStatus,
    ScheduledRepayment,
)
from loan_core.schedule import (
    check_transition,
    open_installments,
    select_target,
    to_date,
)
from loan_core.store import LoanStore

logger = get_logger(__name__)


class RepaymentProcessor:
    """Apply received payments to loans.

    A payment first settles its target installment. Anything beyond the
    target's outstanding amount rolls over the remaining open installments
    in due-date order. A payment against a loan's last open installment closes
    the loan outright.

    Parameters
    ----------
    store : LoanStore
        Transactional store holding loans and schedules.
    config : ScheduleConfig | None
        Schedule settings; ``installment_selection`` picks the target.
    """

    def __init__(self, store: LoanStore, config: ScheduleConfig | None = None) -> None:
        self.store = store
        self.config = config or ScheduleConfig()
        self.config.validate()

    def apply_repayment(
        self,
        loan: Loan,
        received_amount: int,
        currency_code: str,
        received_at: date | datetime | str,
    ) -> ReceivedRepayment:
        """Record a payment and update the schedule and loan balances.

        The loan is re-read inside the transaction, so a stale snapshot is
        fine to pass in. All writes commit together or not at all.

        Parameters
        ----------
        loan : Loan
            Loan being repaid.
        received_amount : int
            Amount received in minor currency units.
        currency_code : str
            Currency of the payment.
        received_at : date | datetime | str
            Day the payment was received.

        Returns
        -------
        ReceivedRepayment
            The recorded payment.

        Raises
        ------
        ValidationError
            If ``received_amount`` is not positive.
        EntityNotFoundError
            If the loan does not exist.
        InstallmentNotFoundError
            If no open installment matches the payment.
        LoanNotDueError
            If the loan is already repaid (a ValidationError).
        """
        if received_amount <= 0:
            raise ValidationError(f"Repayment amount must be positive, got {received_amount}")

        received_on = to_date(received_at)

        with self.store.transaction():
            current = self.store.get(Loan, loan.id)
            if current.status != LoanStatus.DUE:
                raise LoanNotDueError(f"Loan {current.id} is {current.status.value}, not due")

            schedule = self.store.query(ScheduledRepayment, loan_id=current.id)
            target = select_target(schedule, received_on, self.config.installment_selection)

            if current.remaining_installments <= 1:
                updated = self._settle(current, schedule)
            else:
                updated = self._allocate(current, schedule, target, received_amount)

            payment = self.store.create(
                ReceivedRepayment,
                loan_id=current.id,
                amount=received_amount,
                currency_code=currency_code,
                received_at=received_on,
            )

        logger.info(
            "Applied %d %s to loan %s: outstanding %d -> %d (%s)",
            received_amount, currency_code, current.id,
            current.outstanding_amount, updated.outstanding_amount, updated.status.value,
        )
        return payment

    def received_repayments(self, loan: Loan) -> list[ReceivedRepayment]:
        """Return payments recorded for ``loan``, oldest first."""
        return self.store.query(ReceivedRepayment, order_by="received_at", loan_id=loan.id)

    def _allocate(
        self,
        loan: Loan,
        schedule: list[ScheduledRepayment],
        target: ScheduledRepayment,
        amount: int,
    ) -> Loan:
        """Spread ``amount`` over the target, then the other open installments."""
        others = [
            installment for installment in open_installments(schedule)
            if installment.id != target.id
        ]

        left = amount
        repaid = 0
        for installment in [target, *others]:
            if left <= 0:
                break
            applied = min(left, installment.outstanding_amount)
            outstanding = installment.outstanding_amount - applied
            status = RepaymentStatus.REPAID if outstanding == 0 else RepaymentStatus.PARTIAL
            self._move(installment, status, outstanding)
            logger.debug(
                "Installment %s of loan %s: applied %d, outstanding %d (%s)",
                installment.installment_number, loan.id, applied, outstanding, status.value,
            )
            left -= applied
            if status == RepaymentStatus.REPAID:
                repaid += 1

        if left > 0:
            logger.warning("Loan %s overpaid by %d", loan.id, left)

        remaining = loan.remaining_installments - repaid
        if remaining == 0:
            return self.store.update(
                loan,
                outstanding_amount=0,
                status=LoanStatus.REPAID,
                remaining_installments=0,
            )
        return self.store.update(
            loan,
            outstanding_amount=max(loan.outstanding_amount - (amount - left), 0),
            remaining_installments=remaining,
        )

    def _settle(self, loan: Loan, schedule: list[ScheduledRepayment]) -> Loan:
        """Close the loan and every installment still open on it."""
        for installment in open_installments(schedule):
            self._move(installment, RepaymentStatus.REPAID, 0)
        logger.debug("Settling loan %s with %d outstanding", loan.id, loan.outstanding_amount)
        return self.store.update(
            loan,
            outstanding_amount=0,
            status=LoanStatus.REPAID,
            remaining_installments=0,
        )

    def _move(
        self, installment: ScheduledRepayment, status: RepaymentStatus, outstanding: int
    ) -> ScheduledRepayment:
        check_transition(installment.status, status)
        return self.store.update(installment, outstanding_amount=outstanding, status=status)
