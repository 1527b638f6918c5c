"""Domain models for loans and repayments."""

from loan_core.models.base import User
from loan_core.models.enums import (
    REPAYMENT_TRANSITIONS,
    InstallmentSelection,
    LoanStatus,
    RepaymentStatus,
)
from loan_core.models.loan import Loan, ReceivedRepayment, ScheduledRepayment

__all__ = [
    "InstallmentSelection",
    "Loan",
    "LoanStatus",
    "REPAYMENT_TRANSITIONS",
    "ReceivedRepayment",
    "RepaymentStatus",
    "ScheduledRepayment",
    "User",
]
