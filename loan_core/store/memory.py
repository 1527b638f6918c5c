"""In-memory loan store with snapshot-based rollback."""

import itertools
import threading
from dataclasses import dataclass, field
from typing import Any, TypeVar

from loan_core.exceptions import (
    ConcurrentModificationError,
    EntityNotFoundError,
    PersistenceError,
    ReferentialIntegrityError,
)
from loan_core.logging import get_logger
from loan_core.models import Loan, ReceivedRepayment, ScheduledRepayment
from loan_core.store.base import TABLES, LoanStore, check_fields, table_for

T = TypeVar("T")

logger = get_logger(__name__)


def _sort_key(value: Any) -> tuple[bool, Any]:
    # None sorts last
    return (value is None, value)


@dataclass
class InMemoryLoanStore(LoanStore):
    """Loan store backed by dictionaries.

    Transactions are serialized with a re-entrant lock and rolled back by
    restoring the tables captured at the outermost ``begin``. Entities are
    frozen, so a shallow copy of each table is a complete snapshot.
    """

    _tables: dict[type, dict[int, Any]] = field(
        default_factory=lambda: {entity_type: {} for entity_type in TABLES}
    )
    _ids: dict[type, Any] = field(
        default_factory=lambda: {entity_type: itertools.count(1) for entity_type in TABLES}
    )
    _lock: Any = field(default_factory=threading.RLock, repr=False)
    _depth: int = 0
    _saved: dict[type, dict[int, Any]] | None = None

    # Unit of work

    def begin(self) -> None:
        """Start a transaction, or join the one already open."""
        self._lock.acquire()
        if self._depth == 0:
            self._saved = {entity_type: dict(rows) for entity_type, rows in self._tables.items()}
        self._depth += 1

    def commit(self) -> None:
        """Commit when the outermost transaction ends."""
        if self._depth == 0:
            raise PersistenceError("No transaction in progress")
        self._depth -= 1
        if self._depth == 0:
            self._saved = None
        self._lock.release()

    def rollback(self) -> None:
        """Restore every table to its state at the outermost ``begin``."""
        if self._depth == 0:
            return
        if self._saved is not None:
            self._tables = self._saved
        self._saved = None
        logger.warning("Rolled back in-memory transaction")
        while self._depth:
            self._depth -= 1
            self._lock.release()

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    # Repository

    def create(self, entity_type: type[T], **values: Any) -> T:
        """Insert an entity and return it with identity assigned."""
        data = self._new_values(entity_type, values)
        with self._lock:
            self._check_references(entity_type, data)
            entity_id = next(self._ids[entity_type])
            entity = entity_type(id=entity_id, **data)
            self._tables[entity_type][entity_id] = entity
        return entity

    def update(self, entity: T, **values: Any) -> T:
        """Replace a stored entity, checking it was not changed meanwhile."""
        data = self._changed_values(entity, values)
        entity_type = type(entity)
        with self._lock:
            rows = self._tables[entity_type]
            current = rows.get(entity.id)  # type: ignore[attr-defined]
            if current is None:
                raise EntityNotFoundError(
                    f"{entity_type.__name__} {entity.id} not found"  # type: ignore[attr-defined]
                )
            if current.version != entity.version:  # type: ignore[attr-defined]
                raise ConcurrentModificationError(
                    f"{entity_type.__name__} {current.id} changed since it was read "
                    f"(version {entity.version}, now {current.version})"  # type: ignore[attr-defined]
                )
            updated = self._bump(current, data)
            rows[updated.id] = updated
        return updated

    def get(self, entity_type: type[T], entity_id: int) -> T:
        """Fetch an entity by identity."""
        table_for(entity_type)
        with self._lock:
            entity = self._tables[entity_type].get(entity_id)
        if entity is None:
            raise EntityNotFoundError(f"{entity_type.__name__} {entity_id} not found")
        return entity

    def query(
        self,
        entity_type: type[T],
        *,
        order_by: str | tuple[str, ...] | None = None,
        **filters: Any,
    ) -> list[T]:
        """Return matching entities, ordered by ``order_by`` then identity."""
        table_for(entity_type)
        check_fields(entity_type, filters)
        order = (order_by,) if isinstance(order_by, str) else tuple(order_by or ())
        check_fields(entity_type, order)

        with self._lock:
            rows = list(self._tables[entity_type].values())

        matches = [
            row for row in rows
            if all(getattr(row, name) == value for name, value in filters.items())
        ]
        matches.sort(key=lambda row: [_sort_key(getattr(row, name)) for name in order] + [row.id])
        return matches

    def summary(self) -> dict[str, int]:
        """Return row counts per table."""
        with self._lock:
            return {TABLES[entity_type]: len(rows) for entity_type, rows in self._tables.items()}

    def _check_references(self, entity_type: type, data: dict[str, Any]) -> None:
        if entity_type in (ScheduledRepayment, ReceivedRepayment):
            if data.get("loan_id") not in self._tables[Loan]:
                raise ReferentialIntegrityError(f"Loan {data.get('loan_id')} not found")
