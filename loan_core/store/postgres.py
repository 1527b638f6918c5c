"""PostgreSQL-backed loan store using psycopg 3."""

from typing import Any, TypeVar

import psycopg
from psycopg.rows import dict_row

from loan_core.config import PostgresConfig
from loan_core.exceptions import ConcurrentModificationError, EntityNotFoundError, PersistenceError
from loan_core.logging import get_logger
from loan_core.store.base import (
    LoanStore,
    check_fields,
    from_row,
    serialize_value,
    table_for,
    utcnow,
)

T = TypeVar("T")

logger = get_logger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS loans (
    id BIGSERIAL PRIMARY KEY,
    user_id BIGINT NOT NULL,
    amount BIGINT NOT NULL CHECK (amount > 0),
    terms INTEGER NOT NULL CHECK (terms > 0),
    outstanding_amount BIGINT NOT NULL CHECK (outstanding_amount >= 0 AND outstanding_amount <= amount),
    currency_code VARCHAR(3) NOT NULL,
    processed_at DATE NOT NULL,
    status VARCHAR(16) NOT NULL CHECK (status IN ('due', 'repaid')),
    remaining_installments INTEGER NOT NULL CHECK (remaining_installments >= 0),
    version INTEGER NOT NULL DEFAULT 1,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ
);

CREATE TABLE IF NOT EXISTS scheduled_repayments (
    id BIGSERIAL PRIMARY KEY,
    loan_id BIGINT NOT NULL REFERENCES loans (id) ON DELETE CASCADE,
    installment_number INTEGER NOT NULL,
    amount BIGINT NOT NULL CHECK (amount >= 0),
    outstanding_amount BIGINT NOT NULL CHECK (outstanding_amount >= 0 AND outstanding_amount <= amount),
    currency_code VARCHAR(3) NOT NULL,
    due_date DATE NOT NULL,
    status VARCHAR(16) NOT NULL CHECK (status IN ('due', 'partial', 'repaid')),
    version INTEGER NOT NULL DEFAULT 1,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ,
    UNIQUE (loan_id, installment_number)
);

CREATE INDEX IF NOT EXISTS scheduled_repayments_loan_due_idx
    ON scheduled_repayments (loan_id, due_date);

CREATE TABLE IF NOT EXISTS received_repayments (
    id BIGSERIAL PRIMARY KEY,
    loan_id BIGINT NOT NULL REFERENCES loans (id) ON DELETE CASCADE,
    amount BIGINT NOT NULL CHECK (amount > 0),
    currency_code VARCHAR(3) NOT NULL,
    received_at DATE NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""


class PostgresLoanStore(LoanStore):
    """Loan store on a single PostgreSQL connection.

    psycopg opens a transaction implicitly on the first statement; this
    class only decides when to commit or roll it back. Reads and writes
    issued outside :meth:`transaction` run in a transaction of their own.
    Table and column names come from the model dataclasses, never from
    caller input, so statements are assembled as plain strings.
    """

    def __init__(self, connection_string: str, isolation_level: str = "SERIALIZABLE") -> None:
        """Initialize PostgreSQL store.

        Parameters
        ----------
        connection_string : str
            libpq connection string or URL.
        isolation_level : str
            Transaction isolation level, e.g. "SERIALIZABLE" or "READ COMMITTED".
        """
        try:
            level = psycopg.IsolationLevel[isolation_level.upper().replace(" ", "_")]
        except KeyError:
            raise PersistenceError(f"Unknown isolation level: {isolation_level!r}") from None

        self.conn = psycopg.connect(connection_string, row_factory=dict_row)
        self.conn.isolation_level = level
        self._depth = 0

    @classmethod
    def from_config(cls, config: PostgresConfig) -> "PostgresLoanStore":
        """Connect using a PostgresConfig."""
        return cls(config.connection_string, isolation_level=config.isolation_level)

    def create_schema(self) -> None:
        """Create the loan tables if they do not exist."""
        with self.conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)
        self.conn.commit()
        logger.info("Loan schema ready")

    # Unit of work

    def begin(self) -> None:
        """Mark the start of a transaction."""
        self._depth += 1

    def commit(self) -> None:
        """Commit when the outermost transaction ends."""
        if self._depth == 0:
            raise PersistenceError("No transaction in progress")
        self._depth -= 1
        if self._depth == 0:
            self.conn.commit()

    def rollback(self) -> None:
        """Roll back the whole transaction, however deeply nested."""
        if self._depth == 0:
            return
        self._depth = 0
        self.conn.rollback()
        logger.warning("Rolled back PostgreSQL transaction")

    # Repository

    def create(self, entity_type: type[T], **values: Any) -> T:
        """Insert a row and return it as a snapshot."""
        data = self._new_values(entity_type, values)
        table = table_for(entity_type)
        columns = list(data)
        placeholders = ", ".join(["%s"] * len(columns))
        statement = (
            f"INSERT INTO {table} ({', '.join(columns)}) "  # noqa: S608
            f"VALUES ({placeholders}) RETURNING *"
        )

        with self.transaction(), self.conn.cursor() as cur:
            cur.execute(statement, [serialize_value(data[c]) for c in columns])
            row = cur.fetchone()
        return from_row(entity_type, row)

    def update(self, entity: T, **values: Any) -> T:
        """Update a row guarded by its version and return the new snapshot."""
        data = self._changed_values(entity, values)
        entity_type = type(entity)
        table = table_for(entity_type)
        assignments = [f"{column} = %s" for column in data]
        assignments += ["version = version + 1", "updated_at = %s"]
        statement = (
            f"UPDATE {table} SET {', '.join(assignments)} "  # noqa: S608
            "WHERE id = %s AND version = %s RETURNING *"
        )
        params = [serialize_value(value) for value in data.values()]
        params += [utcnow(), entity.id, entity.version]  # type: ignore[attr-defined]

        with self.transaction(), self.conn.cursor() as cur:
            cur.execute(statement, params)
            row = cur.fetchone()
        if row is None:
            raise ConcurrentModificationError(
                f"{entity_type.__name__} {entity.id} changed or vanished since "  # type: ignore[attr-defined]
                f"version {entity.version}"  # type: ignore[attr-defined]
            )
        return from_row(entity_type, row)

    def get(self, entity_type: type[T], entity_id: int) -> T:
        """Fetch a row by identity."""
        table = table_for(entity_type)
        with self.transaction(), self.conn.cursor() as cur:
            cur.execute(f"SELECT * FROM {table} WHERE id = %s", [entity_id])  # noqa: S608
            row = cur.fetchone()
        if row is None:
            raise EntityNotFoundError(f"{entity_type.__name__} {entity_id} not found")
        return from_row(entity_type, row)

    def query(
        self,
        entity_type: type[T],
        *,
        order_by: str | tuple[str, ...] | None = None,
        **filters: Any,
    ) -> list[T]:
        """Select rows matching equality filters."""
        table = table_for(entity_type)
        check_fields(entity_type, filters)
        order = (order_by,) if isinstance(order_by, str) else tuple(order_by or ())
        check_fields(entity_type, order)

        statement = f"SELECT * FROM {table}"  # noqa: S608
        if filters:
            statement += " WHERE " + " AND ".join(f"{name} = %s" for name in filters)
        statement += " ORDER BY " + ", ".join([*order, "id"])
        params = [serialize_value(value) for value in filters.values()]

        with self.transaction(), self.conn.cursor() as cur:
            cur.execute(statement, params)
            rows = cur.fetchall()
        return [from_row(entity_type, row) for row in rows]

    def close(self) -> None:
        """Close the connection."""
        self.conn.close()
