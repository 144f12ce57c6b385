"""Event store support for series writes.

This module provides the abstract base class the series engine writes
through, the results its operations return, and the errors those results
carry. Backends live in submodules (see ``eventseries.mutable.memory``).
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Self

from eventseries.event import EventRow


class SeriesError(Exception):
    """Base class for failures reported by series operations."""


class ExpansionError(SeriesError):
    """A recurrence rule produced no instances."""


class EventNotFoundError(SeriesError):
    """The event does not exist among the organization's live events."""


class NotInSeriesError(EventNotFoundError):
    """The event is missing or is not part of a series."""


class StoreError(SeriesError):
    """Raised by event stores when a read or write fails."""


@dataclass(frozen=True)
class SeriesRef:
    """Where one live event sits in its series.

    Attributes:
        event_id: The event's identity
        group_id: Series identity, None for standalone events
        position: Position within the series, None for standalone events
    """

    event_id: str
    group_id: str | None
    position: int | None


@dataclass(frozen=True)
class CreateResult:
    """Result of creating a series.

    Attributes:
        success: True if every row was inserted
        group_id: The new series identity if successful, None if failed
        event_ids: Identities of the inserted rows, in position order
        error: The exception that occurred if failed, None if successful
    """

    success: bool
    group_id: str | None
    event_ids: list[str] = field(default_factory=list)
    error: Exception | None = None

    @classmethod
    def failure(cls, error: Exception) -> Self:
        return cls(success=False, group_id=None, error=error)


@dataclass(frozen=True)
class UpdateResult:
    """Result of a "this and future" update.

    Attributes:
        success: True if the update was applied
        updated_ids: Identities of the rows that changed
        error: The exception that occurred if failed, None if successful
    """

    success: bool
    updated_ids: list[str] = field(default_factory=list)
    error: Exception | None = None

    @classmethod
    def failure(cls, error: Exception) -> Self:
        return cls(success=False, error=error)


@dataclass(frozen=True)
class DeleteResult:
    """Result of a scoped soft delete.

    Attributes:
        success: True if the delete was applied
        deleted_ids: Identities of the rows retired by this call
        error: The exception that occurred if failed, None if successful
    """

    success: bool
    deleted_ids: list[str] = field(default_factory=list)
    error: Exception | None = None

    @classmethod
    def failure(cls, error: Exception) -> Self:
        return cls(success=False, error=error)


class EventStore(ABC):
    """Abstract base class for the storage behind a series.

    Backends report failures by raising StoreError. Every lookup and filter
    ignores soft-deleted rows unless stated otherwise.
    """

    @abstractmethod
    def bulk_insert(self, rows: Sequence[EventRow]) -> list[str]:
        """Insert rows atomically: all of them or none.

        Args:
            rows: Rows to insert. Rows with an empty id get one assigned.

        Returns:
            Identities of the inserted rows, in input order
        """
        pass

    @abstractmethod
    def find_one(self, event_id: str, organization_id: str) -> SeriesRef | None:
        """Locate a live event of the organization.

        Returns:
            The event's series reference, or None if there is no such live event
        """
        pass

    @abstractmethod
    def update_where(
        self,
        group_id: str,
        organization_id: str,
        *,
        position_gte: int,
        start_gte: datetime | None,
        patch: dict[str, Any],
    ) -> list[str]:
        """Apply patch to live rows of a series matching the filters.

        Args:
            group_id: Series identity
            organization_id: Owning organization
            position_gte: Lowest position to touch
            start_gte: Earliest start to touch, None for no time filter
            patch: Field values to write

        Returns:
            Identities of the updated rows
        """
        pass

    @abstractmethod
    def soft_delete_where(
        self,
        group_id: str,
        organization_id: str,
        *,
        position_gte: int | None,
        deleted_at: datetime,
    ) -> list[str]:
        """Soft-delete live rows of a series.

        Args:
            group_id: Series identity
            organization_id: Owning organization
            position_gte: Lowest position to retire, None for every position
            deleted_at: Timestamp to record on each retired row

        Returns:
            Identities of the rows retired by this call
        """
        pass

    @abstractmethod
    def soft_delete_one(
        self, event_id: str, organization_id: str, *, deleted_at: datetime
    ) -> list[str]:
        """Soft-delete a single live row.

        Returns:
            A one-element list with the event's id, or empty if nothing matched
        """
        pass

    @abstractmethod
    def list_series(
        self, group_id: str, organization_id: str, *, include_deleted: bool = False
    ) -> list[EventRow]:
        """Rows of a series ordered by position."""
        pass


__all__ = [
    "EventStore",
    "SeriesRef",
    "CreateResult",
    "UpdateResult",
    "DeleteResult",
    "SeriesError",
    "ExpansionError",
    "EventNotFoundError",
    "NotInSeriesError",
    "StoreError",
]
