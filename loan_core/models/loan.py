"""Loan, schedule and repayment models."""

from dataclasses import dataclass
from datetime import date, datetime

from loan_core.models.enums import LoanStatus, RepaymentStatus


@dataclass(frozen=True)
class Loan:
    """Loan contract snapshot."""

    id: int
    user_id: int
    amount: int  # Principal in minor currency units
    terms: int  # Number of installments
    outstanding_amount: int
    currency_code: str
    processed_at: date
    status: LoanStatus
    remaining_installments: int  # Installments not yet repaid
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_repaid(self) -> bool:
        return self.status == LoanStatus.REPAID


@dataclass(frozen=True)
class ScheduledRepayment:
    """One installment of a loan's amortization schedule."""

    id: int
    loan_id: int
    installment_number: int  # 1, 2, 3, ...
    amount: int  # Original installment amount
    outstanding_amount: int
    currency_code: str
    due_date: date
    status: RepaymentStatus
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status != RepaymentStatus.REPAID


@dataclass(frozen=True)
class ReceivedRepayment:
    """Payment actually received for a loan. Never updated."""

    id: int
    loan_id: int
    amount: int
    currency_code: str
    received_at: date
    created_at: datetime | None = None
