"""Custom exception hierarchy for loan-core."""


class LoanCoreError(Exception):
    """Base exception for all loan-core errors."""


class ValidationError(LoanCoreError):
    """Raised when an operation's preconditions are not met."""


class EntityNotFoundError(LoanCoreError):
    """Raised when a referenced entity does not exist."""


class ReferentialIntegrityError(EntityNotFoundError):
    """Raised when a foreign key reference is violated."""


class InstallmentNotFoundError(EntityNotFoundError):
    """Raised when no open installment matches a repayment."""


class InvalidEntityStateError(LoanCoreError):
    """Raised when an entity is in an invalid state for the operation."""


class LoanNotDueError(ValidationError, InvalidEntityStateError):
    """Raised when a payment arrives for a loan that is no longer due."""


class PersistenceError(LoanCoreError):
    """Raised when the store cannot complete an operation."""


class ConcurrentModificationError(PersistenceError):
    """Raised when a row changed since it was read (version mismatch)."""


class ConfigurationError(LoanCoreError):
    """Raised when configuration is invalid or missing."""
