"""Organization events as the engine reads and writes them.

EventDraft is what a caller hands in to start a series, EventRow is one stored
instance, and EventPatch is the restricted set of fields a series-wide update
may touch.
"""

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Literal, TypeAlias, get_args

from eventseries.util import to_utc

EventType: TypeAlias = Literal[
    "general", "philanthropy", "game", "meeting", "social", "fundraiser"
]
Audience: TypeAlias = Literal["members", "alumni", "both"]

_EVENT_TYPES: tuple[str, ...] = get_args(EventType)
_AUDIENCES: tuple[str, ...] = get_args(Audience)


def _check_choice(name: str, value: str, valid: tuple[str, ...]) -> None:
    if value not in valid:
        raise ValueError(
            f"Invalid {name}: {value!r}\nValid values: {', '.join(valid)}\n"
        )


@dataclass(frozen=True, kw_only=True)
class EventDraft:
    """The anchor of a new series.

    Attributes:
        organization_id: Owning organization
        title: Event title
        start: Start of the first occurrence
        end: End of the first occurrence, or None for open-ended events
        description: Free-form description (optional)
        location: Where the event takes place (optional)
        event_type: Category tag
        is_philanthropy: True for philanthropy events
        audience: Who the event is for
        target_user_ids: Explicit recipients, or None for the whole audience
        created_by_user_id: Creator, if known
    """

    organization_id: str
    title: str
    start: datetime
    end: datetime | None = None
    description: str | None = None
    location: str | None = None
    event_type: EventType = "general"
    is_philanthropy: bool = False
    audience: Audience = "both"
    target_user_ids: list[str] | None = None
    created_by_user_id: str | None = None

    def __post_init__(self) -> None:
        _check_choice("event_type", self.event_type, _EVENT_TYPES)
        _check_choice("audience", self.audience, _AUDIENCES)
        # stored times are always UTC-aware; naive input is read as UTC
        object.__setattr__(self, "start", to_utc(self.start))
        if self.end is not None:
            object.__setattr__(self, "end", to_utc(self.end))
        if self.end is not None and self.end < self.start:
            raise ValueError(
                f"EventDraft end ({self.end}) must not precede start ({self.start})"
            )


@dataclass(frozen=True, kw_only=True)
class EventRow(EventDraft):
    """One stored event, standalone or part of a series.

    Attributes:
        id: Store-assigned identity ("" until inserted)
        recurrence_group_id: Series identity, None for standalone events
        recurrence_index: Position within the series, None for standalone events
        recurrence_rule: Serialized rule, kept only on position 0
        deleted_at: Soft-delete timestamp, None while live
    """

    id: str = ""
    recurrence_group_id: str | None = None
    recurrence_index: int | None = None
    recurrence_rule: dict[str, Any] | None = None
    deleted_at: datetime | None = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.deleted_at is not None:
            object.__setattr__(self, "deleted_at", to_utc(self.deleted_at))

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __str__(self) -> str:
        if self.recurrence_group_id is None:
            return f"EventRow({self.id!r}, '{self.title}', {self.start.isoformat()})"
        return (
            f"EventRow({self.id!r}, '{self.title}', {self.start.isoformat()}, "
            f"series {self.recurrence_group_id}#{self.recurrence_index})"
        )


@dataclass(frozen=True, kw_only=True)
class EventPatch:
    """Fields a "this and future" update may change. None leaves a field as is."""

    title: str | None = None
    description: str | None = None
    location: str | None = None
    event_type: EventType | None = None
    is_philanthropy: bool | None = None

    def __post_init__(self) -> None:
        if self.event_type is not None:
            _check_choice("event_type", self.event_type, _EVENT_TYPES)
        if not self.changes():
            raise ValueError("EventPatch must set at least one field")

    def changes(self) -> dict[str, Any]:
        """The fields that are set, ready for dataclasses.replace()."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }
