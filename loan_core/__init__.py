"""loan-core: loan issuance and repayment application."""

from loan_core.config import LoanCoreConfig, PostgresConfig, ScheduleConfig
from loan_core.issuer import LoanIssuer
from loan_core.repayment import RepaymentProcessor

__all__ = [
    "LoanCoreConfig",
    "LoanIssuer",
    "PostgresConfig",
    "RepaymentProcessor",
    "ScheduleConfig",
]
