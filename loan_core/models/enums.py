"""Enumeration types for loan entities."""

from enum import Enum


class LoanStatus(str, Enum):
    DUE = "due"
    REPAID = "repaid"


class RepaymentStatus(str, Enum):
    DUE = "due"
    PARTIAL = "partial"
    REPAID = "repaid"


class InstallmentSelection(str, Enum):
    """How a received payment picks the installment it settles."""

    EARLIEST = "earliest"  # First open installment by due date
    DUE_DATE = "due_date"  # Open installment due on the payment date


# Allowed installment status transitions; staying in place is always allowed.
REPAYMENT_TRANSITIONS: dict[RepaymentStatus, frozenset[RepaymentStatus]] = {
    RepaymentStatus.DUE: frozenset({RepaymentStatus.PARTIAL, RepaymentStatus.REPAID}),
    RepaymentStatus.PARTIAL: frozenset({RepaymentStatus.REPAID}),
    RepaymentStatus.REPAID: frozenset(),
}
