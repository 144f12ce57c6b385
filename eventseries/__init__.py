from .event import Audience, EventDraft, EventPatch, EventRow, EventType
from .instance import EventInstance
from .mutable import (
    CreateResult,
    DeleteResult,
    EventNotFoundError,
    EventStore,
    ExpansionError,
    NotInSeriesError,
    SeriesError,
    SeriesRef,
    StoreError,
    UpdateResult,
)
from .recurrence import (
    DEFAULT_LIMITS,
    Daily,
    ExpansionLimits,
    Monthly,
    RecurrenceRule,
    Weekly,
    expand,
    rule_from_dict,
    rule_to_dict,
)
from .series import DeleteScope, SeriesMutator

__all__ = [
    "EventInstance",
    "EventDraft",
    "EventRow",
    "EventPatch",
    "EventType",
    "Audience",
    "Daily",
    "Weekly",
    "Monthly",
    "RecurrenceRule",
    "ExpansionLimits",
    "DEFAULT_LIMITS",
    "expand",
    "rule_to_dict",
    "rule_from_dict",
    "SeriesMutator",
    "DeleteScope",
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
