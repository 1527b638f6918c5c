"""Amortization schedule arithmetic and installment selection.

Shared by loan issuance and repayment application. Amounts are integers in
minor currency units; installments are split with floor division and the
last one absorbs the remainder, so a schedule always sums to the principal.
"""

from datetime import date, datetime
from typing import Iterable

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

from loan_core.exceptions import (
    InstallmentNotFoundError,
    InvalidEntityStateError,
    ValidationError,
)
from loan_core.models import (
    REPAYMENT_TRANSITIONS,
    InstallmentSelection,
    RepaymentStatus,
    ScheduledRepayment,
)


def installment_base(amount: int, period_count: int) -> int:
    """Return the floor-divided amount of a regular installment."""
    if period_count <= 0:
        raise ValidationError(f"Period count must be positive, got {period_count}")
    return amount // period_count


def installment_amounts(amount: int, terms: int, period_count: int | None = None) -> list[int]:
    """Split ``amount`` into ``terms`` installments.

    Parameters
    ----------
    amount : int
        Principal in minor currency units.
    terms : int
        Number of installments.
    period_count : int | None
        Divisor for the regular installment. Defaults to ``terms``; a fixed
        divisor is accepted as long as the last installment stays positive.

    Returns
    -------
    list[int]
        Installment amounts; every one but the last equals the base.
    """
    if amount <= 0:
        raise ValidationError(f"Loan amount must be positive, got {amount}")
    if terms <= 0:
        raise ValidationError(f"Loan terms must be positive, got {terms}")

    base = installment_base(amount, period_count or terms)
    last = base + (amount - base * terms)
    if last <= 0:
        raise ValidationError(
            f"Period count {period_count} leaves no principal for the last of {terms} installments"
        )
    return [base] * (terms - 1) + [last]


def add_months(value: date, months: int) -> date:
    """Advance ``value`` by calendar months, clamping to the month's last day."""
    return value + relativedelta(months=months)


def to_date(value: date | datetime | str) -> date:
    """Coerce a date, datetime or ISO-8601 string to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return isoparse(value).date()


def due_dates(processed_at: date, terms: int) -> list[date]:
    """Due dates one, two, ... ``terms`` months after ``processed_at``."""
    # Each offset is taken from the issue date so month-end clamping never accumulates.
    return [add_months(processed_at, i) for i in range(1, terms + 1)]


def schedule_order(installment: ScheduledRepayment) -> tuple[date, int]:
    return (installment.due_date, installment.installment_number)


def open_installments(installments: Iterable[ScheduledRepayment]) -> list[ScheduledRepayment]:
    """Installments not yet repaid, earliest first."""
    return sorted((i for i in installments if i.is_open), key=schedule_order)


def select_target(
    installments: Iterable[ScheduledRepayment],
    received_at: date,
    selection: InstallmentSelection | str = InstallmentSelection.EARLIEST,
) -> ScheduledRepayment:
    """Pick the installment a payment received on ``received_at`` settles.

    ``earliest`` takes the first open installment regardless of the payment
    date; ``due_date`` requires an open installment due on that exact day.
    """
    candidates = open_installments(installments)
    if InstallmentSelection(selection) == InstallmentSelection.DUE_DATE:
        candidates = [i for i in candidates if i.due_date == received_at]
        if not candidates:
            raise InstallmentNotFoundError(f"No open installment due on {received_at.isoformat()}")
    elif not candidates:
        raise InstallmentNotFoundError("No open installment left on the schedule")
    return candidates[0]


def check_transition(current: RepaymentStatus, new: RepaymentStatus) -> None:
    """Raise InvalidEntityStateError unless ``current -> new`` is allowed."""
    if new != current and new not in REPAYMENT_TRANSITIONS[current]:
        raise InvalidEntityStateError(
            f"Installment cannot move from {current.value} to {new.value}"
        )
