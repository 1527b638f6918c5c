"""Configuration management for loan-core."""

from dataclasses import dataclass, field

from loan_core.exceptions import ConfigurationError
from loan_core.models.enums import InstallmentSelection

STORE_BACKENDS = ("memory", "postgres")
ISOLATION_LEVELS = ("READ COMMITTED", "REPEATABLE READ", "SERIALIZABLE")


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "loans"
    user: str = "postgres"
    password: str = "postgres"
    isolation_level: str = "SERIALIZABLE"

    @property
    def connection_string(self) -> str:
        """Get connection string."""
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class ScheduleConfig:
    """Amortization and repayment-matching settings.

    ``period_count`` fixes the divisor used for the per-installment base
    amount. ``None`` divides by the loan's own number of terms.
    """

    period_count: int | None = None
    installment_selection: InstallmentSelection | str = InstallmentSelection.EARLIEST

    def validate(self) -> None:
        """Raise ConfigurationError if settings are inconsistent."""
        if self.period_count is not None and self.period_count <= 0:
            raise ConfigurationError(f"period_count must be positive, got {self.period_count}")
        try:
            InstallmentSelection(self.installment_selection)
        except ValueError:
            raise ConfigurationError(
                f"Unknown installment selection: {self.installment_selection!r}"
            ) from None


@dataclass
class LoanCoreConfig:
    """Main configuration for loan-core."""

    store_backend: str = "memory"
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    log_level: str = "INFO"
    log_format: str = "standard"

    def validate(self) -> None:
        """Raise ConfigurationError if any section is invalid."""
        if self.store_backend not in STORE_BACKENDS:
            raise ConfigurationError(f"Unknown store backend: {self.store_backend!r}")
        if self.postgres.isolation_level.upper() not in ISOLATION_LEVELS:
            raise ConfigurationError(
                f"Unknown isolation level: {self.postgres.isolation_level!r}"
            )
        self.schedule.validate()

    @classmethod
    def from_env(cls) -> "LoanCoreConfig":
        """Create config from environment variables."""
        import os

        postgres = PostgresConfig(
            host=os.getenv("POSTGRES_HOST", "localhost"),
            port=int(os.getenv("POSTGRES_PORT", "5432")),
            database=os.getenv("POSTGRES_DB", "loans"),
            user=os.getenv("POSTGRES_USER", "postgres"),
            password=os.getenv("POSTGRES_PASSWORD", "postgres"),
            isolation_level=os.getenv("POSTGRES_ISOLATION_LEVEL", "SERIALIZABLE"),
        )

        period_count = os.getenv("LOAN_PERIOD_COUNT")
        schedule = ScheduleConfig(
            period_count=int(period_count) if period_count else None,
            installment_selection=os.getenv("LOAN_INSTALLMENT_SELECTION", "earliest"),
        )

        config = cls(
            store_backend=os.getenv("LOAN_STORE", "memory"),
            postgres=postgres,
            schedule=schedule,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard"),
        )
        config.validate()
        return config
