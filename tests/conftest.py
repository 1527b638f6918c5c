"""Pytest configuration and fixtures."""

from datetime import date

import pytest
from faker import Faker

from loan_core.config import ScheduleConfig
from loan_core.issuer import LoanIssuer
from loan_core.models import User
from loan_core.repayment import RepaymentProcessor
from loan_core.store import InMemoryLoanStore


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def fake(seed: int) -> Faker:
    """Seeded Faker instance."""
    faker = Faker()
    faker.seed_instance(seed)
    return faker


@pytest.fixture
def user(fake: Faker) -> User:
    """Sample borrower."""
    return User(id=fake.random_int(1, 10_000), name=fake.name(), email=fake.email())


@pytest.fixture
def currency_code(fake: Faker) -> str:
    """Sample ISO 4217 currency code."""
    return fake.currency_code()


@pytest.fixture
def processed_at() -> date:
    """Loan issue date."""
    return date(2022, 1, 20)


@pytest.fixture
def store() -> InMemoryLoanStore:
    """Create a fresh store for each test."""
    return InMemoryLoanStore()


@pytest.fixture
def schedule_config() -> ScheduleConfig:
    """Default schedule settings."""
    return ScheduleConfig()


@pytest.fixture
def issuer(store: InMemoryLoanStore, schedule_config: ScheduleConfig) -> LoanIssuer:
    return LoanIssuer(store, schedule_config)


@pytest.fixture
def processor(store: InMemoryLoanStore, schedule_config: ScheduleConfig) -> RepaymentProcessor:
    return RepaymentProcessor(store, schedule_config)
