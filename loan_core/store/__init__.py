"""Transactional stores for loan entities."""

from loan_core.config import LoanCoreConfig
from loan_core.exceptions import ConfigurationError
from loan_core.store.base import LoanStore
from loan_core.store.memory import InMemoryLoanStore


def create_store(config: LoanCoreConfig) -> LoanStore:
    """Build the store backend named by ``config.store_backend``."""
    if config.store_backend == "memory":
        return InMemoryLoanStore()
    if config.store_backend == "postgres":
        from loan_core.store.postgres import PostgresLoanStore

        return PostgresLoanStore.from_config(config.postgres)
    raise ConfigurationError(f"Unknown store backend: {config.store_backend!r}")


__all__ = ["InMemoryLoanStore", "LoanStore", "create_store"]
