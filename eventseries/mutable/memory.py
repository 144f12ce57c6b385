"""In-memory event store implementation.

This module provides MemoryEventStore, a simple event store backed by a dict.
It's useful for testing, prototyping, and embedding the engine where no
database is available.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import datetime
from typing import Any

from typing_extensions import override

from eventseries.event import EventRow
from eventseries.mutable import EventStore, SeriesRef, StoreError

logger = logging.getLogger(__name__)

_OPERATIONS = frozenset(
    {
        "bulk_insert",
        "find_one",
        "update_where",
        "soft_delete_where",
        "soft_delete_one",
        "list_series",
    }
)


class MemoryEventStore(EventStore):
    """In-memory event store keyed by event id.

    Rows are stored as immutable EventRow values and replaced on every write,
    so rows handed out earlier never change under the caller.

    Attributes:
        _rows: Stored rows by id, in insertion order
        _next_id: Counter for assigning ids to rows inserted without one
        _failures: Errors queued by fail_next(), keyed by operation name
    """

    def __init__(self, rows: Iterable[EventRow] = ()) -> None:
        """Initialize an empty or pre-populated store.

        Args:
            rows: Optional initial rows (ids are assigned where missing)
        """
        self._rows: dict[str, EventRow] = {}
        self._next_id: int = 0
        self._failures: dict[str, StoreError] = {}

        rows = list(rows)
        if rows:
            self.bulk_insert(rows)

    def fail_next(self, operation: str, error: StoreError | None = None) -> None:
        """Make the next call to ``operation`` raise instead of running.

        Args:
            operation: EventStore method name, e.g. "bulk_insert"
            error: Error to raise (default: a generic StoreError)
        """
        if operation not in _OPERATIONS:
            valid = ", ".join(sorted(_OPERATIONS))
            raise ValueError(f"Unknown operation: '{operation}'\nValid operations: {valid}\n")
        self._failures[operation] = error or StoreError(f"{operation} failed")

    def _check_failure(self, operation: str) -> None:
        error = self._failures.pop(operation, None)
        if error is not None:
            logger.debug("memory store: injected failure in %s", operation)
            raise error

    def _assign_id(self) -> str:
        self._next_id += 1
        return f"evt-{self._next_id}"

    def _live(self, group_id: str, organization_id: str) -> Iterable[EventRow]:
        for row in self._rows.values():
            if (
                row.recurrence_group_id == group_id
                and row.organization_id == organization_id
                and not row.is_deleted
            ):
                yield row

    def get(self, event_id: str) -> EventRow | None:
        """Return a stored row by id, deleted or not."""
        return self._rows.get(event_id)

    def rows(self) -> list[EventRow]:
        """All stored rows, deleted ones included, in insertion order."""
        return list(self._rows.values())

    @override
    def bulk_insert(self, rows: Sequence[EventRow]) -> list[str]:
        self._check_failure("bulk_insert")

        # Validate the whole batch before writing anything
        staged: list[EventRow] = []
        seen: set[str] = set()
        for row in rows:
            if not row.id:
                row = replace(row, id=self._assign_id())
            if row.id in self._rows or row.id in seen:
                raise StoreError(f"Duplicate event id: {row.id!r}")
            seen.add(row.id)
            staged.append(row)

        for row in staged:
            self._rows[row.id] = row
        logger.debug("memory store: inserted %d rows", len(staged))
        return [row.id for row in staged]

    @override
    def find_one(self, event_id: str, organization_id: str) -> SeriesRef | None:
        self._check_failure("find_one")

        row = self._rows.get(event_id)
        if row is None or row.is_deleted or row.organization_id != organization_id:
            return None
        return SeriesRef(
            event_id=row.id,
            group_id=row.recurrence_group_id,
            position=row.recurrence_index,
        )

    @override
    def update_where(
        self,
        group_id: str,
        organization_id: str,
        *,
        position_gte: int,
        start_gte: datetime | None,
        patch: dict[str, Any],
    ) -> list[str]:
        self._check_failure("update_where")

        matched = [
            row
            for row in self._live(group_id, organization_id)
            if row.recurrence_index is not None
            and row.recurrence_index >= position_gte
            and (start_gte is None or row.start >= start_gte)
        ]
        for row in matched:
            self._rows[row.id] = replace(row, **patch)
        return [row.id for row in matched]

    @override
    def soft_delete_where(
        self,
        group_id: str,
        organization_id: str,
        *,
        position_gte: int | None,
        deleted_at: datetime,
    ) -> list[str]:
        self._check_failure("soft_delete_where")

        matched = [
            row
            for row in self._live(group_id, organization_id)
            if position_gte is None
            or (row.recurrence_index is not None and row.recurrence_index >= position_gte)
        ]
        for row in matched:
            self._rows[row.id] = replace(row, deleted_at=deleted_at)
        return [row.id for row in matched]

    @override
    def soft_delete_one(
        self, event_id: str, organization_id: str, *, deleted_at: datetime
    ) -> list[str]:
        self._check_failure("soft_delete_one")

        row = self._rows.get(event_id)
        if row is None or row.is_deleted or row.organization_id != organization_id:
            return []
        self._rows[event_id] = replace(row, deleted_at=deleted_at)
        return [event_id]

    @override
    def list_series(
        self, group_id: str, organization_id: str, *, include_deleted: bool = False
    ) -> list[EventRow]:
        self._check_failure("list_series")

        rows = [
            row
            for row in self._rows.values()
            if row.recurrence_group_id == group_id
            and row.organization_id == organization_id
            and (include_deleted or not row.is_deleted)
        ]
        return sorted(rows, key=lambda row: row.recurrence_index or 0)


def store(*rows: EventRow) -> MemoryEventStore:
    """Create an in-memory event store holding the given rows.

    Example:
        >>> from datetime import datetime, timezone
        >>> from eventseries.event import EventRow
        >>> from eventseries.mutable.memory import store
        >>>
        >>> events = store(
        ...     EventRow(
        ...         id="e1",
        ...         organization_id="org-1",
        ...         title="Chapter meeting",
        ...         start=datetime(2026, 3, 9, 18, tzinfo=timezone.utc),
        ...     ),
        ... )
        >>> events.find_one("e1", "org-1").group_id is None
        True
    """
    return MemoryEventStore(rows)
