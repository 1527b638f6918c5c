"""Transactional store contract shared by all backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator, TypeVar

from loan_core.exceptions import InvalidEntityStateError, PersistenceError
from loan_core.models import (
    Loan,
    LoanStatus,
    ReceivedRepayment,
    RepaymentStatus,
    ScheduledRepayment,
)

T = TypeVar("T")

# Entity type -> table name. Order matters for schema creation (FK targets first).
TABLES: dict[type, str] = {
    Loan: "loans",
    ScheduledRepayment: "scheduled_repayments",
    ReceivedRepayment: "received_repayments",
}

STATUS_TYPES: dict[type, type[Enum]] = {
    Loan: LoanStatus,
    ScheduledRepayment: RepaymentStatus,
}

# Fact records: written once, never updated.
APPEND_ONLY: frozenset[type] = frozenset({ReceivedRepayment})

# Columns the store owns; callers never set them directly.
MANAGED_FIELDS = frozenset({"id", "version", "created_at", "updated_at"})


def table_for(entity_type: type) -> str:
    """Return the table backing ``entity_type``."""
    try:
        return TABLES[entity_type]
    except KeyError:
        raise PersistenceError(f"{entity_type.__name__} is not a stored entity") from None


def field_names(entity_type: type) -> list[str]:
    """Return the dataclass field names of ``entity_type`` in declaration order."""
    return [f.name for f in fields(entity_type)]


def check_fields(entity_type: type, names: Any) -> None:
    """Reject field names the entity does not declare."""
    unknown = set(names) - set(field_names(entity_type))
    if unknown:
        raise ValueError(f"Unknown {entity_type.__name__} fields: {sorted(unknown)}")


def serialize_value(value: Any) -> Any:
    """Convert a model value to something the database driver accepts."""
    if isinstance(value, Enum):
        return value.value
    return value


def from_row(entity_type: type[T], row: dict[str, Any]) -> T:
    """Build an entity snapshot from a database row."""
    data = {name: row[name] for name in field_names(entity_type) if name in row}
    status_type = STATUS_TYPES.get(entity_type)
    if status_type is not None and data.get("status") is not None:
        data["status"] = status_type(data["status"])
    return entity_type(**data)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LoanStore(ABC):
    """Repository and unit of work over loan entities.

    Entities are immutable snapshots: ``update`` returns a new snapshot and
    leaves the one passed in untouched. Updates are version-checked, so a
    snapshot read before a concurrent write can no longer be saved.

    Use :meth:`transaction` to group writes::

        with store.transaction():
            loan = store.create(Loan, ...)
            store.create(ScheduledRepayment, loan_id=loan.id, ...)
    """

    @abstractmethod
    def begin(self) -> None:
        """Start a transaction (or join the one in progress)."""

    @abstractmethod
    def commit(self) -> None:
        """Commit the outermost transaction."""

    @abstractmethod
    def rollback(self) -> None:
        """Discard every write made since the outermost ``begin``."""

    @abstractmethod
    def create(self, entity_type: type[T], **values: Any) -> T:
        """Insert a row and return its snapshot with identity populated."""

    @abstractmethod
    def update(self, entity: T, **values: Any) -> T:
        """Write ``values`` over ``entity`` and return the new snapshot."""

    @abstractmethod
    def get(self, entity_type: type[T], entity_id: int) -> T:
        """Fetch one entity by identity or raise EntityNotFoundError."""

    @abstractmethod
    def query(
        self,
        entity_type: type[T],
        *,
        order_by: str | tuple[str, ...] | None = None,
        **filters: Any,
    ) -> list[T]:
        """Return entities whose fields equal ``filters``, ordered by ``order_by``."""

    @contextmanager
    def transaction(self) -> Iterator[LoanStore]:
        """Run the enclosed block atomically.

        Commits when the block finishes and rolls back on any exception,
        which is then re-raised unchanged. Nested blocks join the outer
        transaction; a failure anywhere rolls back all of it.
        """
        self.begin()
        try:
            yield self
            self.commit()
        except BaseException:
            self.rollback()
            raise

    def close(self) -> None:
        """Release backend resources."""

    def __enter__(self) -> LoanStore:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # Helpers for subclasses

    def _new_values(self, entity_type: type, values: dict[str, Any]) -> dict[str, Any]:
        """Validate insert values and add the store-managed columns."""
        table_for(entity_type)
        check_fields(entity_type, values)
        managed = MANAGED_FIELDS & set(values)
        if managed:
            raise ValueError(f"Fields managed by the store cannot be set: {sorted(managed)}")
        names = field_names(entity_type)
        data = dict(values)
        data["created_at"] = utcnow()
        if "version" in names:
            data["version"] = 1
        return data

    def _changed_values(self, entity: Any, values: dict[str, Any]) -> dict[str, Any]:
        """Validate update values for ``entity``."""
        entity_type = type(entity)
        table_for(entity_type)
        if entity_type in APPEND_ONLY:
            raise InvalidEntityStateError(f"{entity_type.__name__} records are append-only")
        check_fields(entity_type, values)
        managed = MANAGED_FIELDS & set(values)
        if managed:
            raise ValueError(f"Fields managed by the store cannot be set: {sorted(managed)}")
        return dict(values)

    @staticmethod
    def _bump(entity: T, values: dict[str, Any]) -> T:
        """Apply ``values`` to a snapshot and advance its version."""
        return replace(
            entity,
            **values,
            version=entity.version + 1,  # type: ignore[attr-defined]
            updated_at=utcnow(),
        )
