"""Recurrence rules and the expansion of an anchor event into instances.

Rules are small immutable values (Daily, Weekly, Monthly). ``expand`` turns
one anchor plus a rule into a bounded, ordered list of EventInstance values,
using python-dateutil for the calendar stepping.

All calendar arithmetic happens in UTC: "every Monday" means every UTC
Monday, and the anchor's UTC time-of-day is held constant across instances.
"""

import calendar
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from itertools import count, islice
from typing import Any, TypeAlias

from dateutil.relativedelta import relativedelta
from dateutil.rrule import DAILY, FR, MO, SA, SU, TH, TU, WE, WEEKLY, rrule, weekday
from typing_extensions import assert_never

from eventseries.instance import EventInstance
from eventseries.util import (
    DAILY_CAP,
    DAY_NAMES,
    DEFAULT_HORIZON_MONTHS,
    MONTHLY_CAP,
    WEEKLY_CAP,
    Day,
    day_from_platform,
    day_to_platform,
    to_utc,
)

# Mapping from day names to dateutil weekday constants
_DAY_MAP: dict[Day, weekday] = {
    "monday": MO,
    "tuesday": TU,
    "wednesday": WE,
    "thursday": TH,
    "friday": FR,
    "saturday": SA,
    "sunday": SU,
}


@dataclass(frozen=True, kw_only=True)
class ExpansionLimits:
    """Bounds applied to every expansion.

    Attributes:
        daily_cap: Most instances a Daily rule may produce
        weekly_cap: Most instances a Weekly rule may produce
        monthly_cap: Most instances a Monthly rule may produce
        default_horizon_months: Boundary used when a rule has no recurrence_end,
            counted in calendar months from the anchor start
    """

    daily_cap: int = DAILY_CAP
    weekly_cap: int = WEEKLY_CAP
    monthly_cap: int = MONTHLY_CAP
    default_horizon_months: int = DEFAULT_HORIZON_MONTHS

    def __post_init__(self) -> None:
        for name in ("daily_cap", "weekly_cap", "monthly_cap", "default_horizon_months"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")


DEFAULT_LIMITS = ExpansionLimits()


@dataclass(frozen=True, kw_only=True)
class Daily:
    """Repeat every calendar day."""

    recurrence_end: date | None = None


@dataclass(frozen=True, kw_only=True)
class Weekly:
    """Repeat on the given weekdays.

    Attributes:
        days: Weekday names ("monday", ...). Empty means the anchor's own weekday.
        recurrence_end: Last calendar day (inclusive) an instance may fall on
    """

    days: frozenset[Day] = frozenset()
    recurrence_end: date | None = None

    def __post_init__(self) -> None:
        raw = [self.days] if isinstance(self.days, str) else list(self.days)
        names: set[Day] = set()
        for d in raw:
            d_lower = d.lower()
            if d_lower not in _DAY_MAP:
                valid = ", ".join(DAY_NAMES)
                raise ValueError(f"Invalid day name: '{d}'\nValid days: {valid}\n")
            names.add(d_lower)  # type: ignore[arg-type]
        object.__setattr__(self, "days", frozenset(names))


@dataclass(frozen=True, kw_only=True)
class Monthly:
    """Repeat once a month on day_of_month, clamped to the month's length.

    ``day_of_month=None`` means the anchor's own day of month.
    """

    day_of_month: int | None = None
    recurrence_end: date | None = None

    def __post_init__(self) -> None:
        if self.day_of_month is not None and not 1 <= self.day_of_month <= 31:
            raise ValueError(
                f"day_of_month must be in 1..31, got {self.day_of_month}"
            )


RecurrenceRule: TypeAlias = Daily | Weekly | Monthly


def _boundary(anchor: datetime, recurrence_end: date | None, months: int) -> datetime:
    if recurrence_end is None:
        return anchor + relativedelta(months=+months)
    return datetime.combine(recurrence_end, time.max, tzinfo=timezone.utc)


def _with_anchor_time(occurrence: datetime, anchor: datetime) -> datetime:
    # rrule truncates microseconds, so the time of day is restored explicitly
    return occurrence.replace(
        hour=anchor.hour,
        minute=anchor.minute,
        second=anchor.second,
        microsecond=anchor.microsecond,
    )


def _daily_starts(anchor: datetime, boundary: datetime) -> Iterator[datetime]:
    for occurrence in rrule(DAILY, dtstart=anchor, until=boundary):
        yield _with_anchor_time(occurrence, anchor)


def _weekly_starts(
    anchor: datetime, boundary: datetime, days: frozenset[Day]
) -> Iterator[datetime]:
    if days:
        byweekday = [_DAY_MAP[d] for d in DAY_NAMES if d in days]
    else:
        byweekday = [_DAY_MAP[DAY_NAMES[anchor.weekday()]]]

    # rrule never yields before dtstart, so a requested weekday earlier in the
    # anchor's own week is skipped
    for occurrence in rrule(WEEKLY, dtstart=anchor, until=boundary, byweekday=byweekday):
        yield _with_anchor_time(occurrence, anchor)


def _monthly_starts(
    anchor: datetime, boundary: datetime, day_of_month: int | None
) -> Iterator[datetime]:
    wanted = day_of_month if day_of_month is not None else anchor.day
    first_of_anchor_month = anchor.replace(day=1)

    for offset in count():
        first = first_of_anchor_month + relativedelta(months=+offset)
        days_in_month = calendar.monthrange(first.year, first.month)[1]
        candidate = first.replace(day=min(wanted, days_in_month))
        if candidate > boundary:
            return
        if candidate >= anchor:
            yield candidate


def _instances(
    starts: Iterable[datetime], duration: timedelta | None, cap: int
) -> list[EventInstance]:
    return [
        EventInstance(
            start=start,
            end=start + duration if duration is not None else None,
            position=position,
        )
        for position, start in enumerate(islice(starts, cap))
    ]


def expand(
    start: datetime,
    end: datetime | None,
    rule: RecurrenceRule,
    *,
    limits: ExpansionLimits = DEFAULT_LIMITS,
) -> list[EventInstance]:
    """Expand an anchor event into the ordered instances of its series.

    Args:
        start: Anchor start. Naive values are read as UTC.
        end: Anchor end, or None. Fixes the duration of every instance.
        rule: Daily, Weekly or Monthly rule
        limits: Caps and default horizon

    Returns:
        Instances in chronological order, positions 0, 1, 2, ...

    Raises:
        TypeError: If rule is not one of the supported variants

    Examples:
        >>> from datetime import date, datetime, timezone
        >>> from eventseries.recurrence import Weekly, expand
        >>>
        >>> practice = datetime(2026, 3, 9, 18, tzinfo=timezone.utc)  # a Monday
        >>> instances = expand(
        ...     practice,
        ...     practice.replace(hour=19),
        ...     Weekly(days=frozenset({"monday"}), recurrence_end=date(2026, 4, 6)),
        ... )
        >>> len(instances)
        5
    """
    if not isinstance(rule, (Daily, Weekly, Monthly)):
        raise TypeError(
            f"Unsupported recurrence rule: {type(rule).__name__!r}\n"
            f"Expected one of Daily, Weekly, Monthly"
        )

    anchor = to_utc(start)
    duration = to_utc(end) - anchor if end is not None else None
    boundary = _boundary(anchor, rule.recurrence_end, limits.default_horizon_months)

    if boundary < anchor:
        return _instances([anchor], duration, 1)

    if isinstance(rule, Daily):
        return _instances(_daily_starts(anchor, boundary), duration, limits.daily_cap)
    elif isinstance(rule, Weekly):
        return _instances(
            _weekly_starts(anchor, boundary, rule.days), duration, limits.weekly_cap
        )
    elif isinstance(rule, Monthly):
        return _instances(
            _monthly_starts(anchor, boundary, rule.day_of_month),
            duration,
            limits.monthly_cap,
        )
    else:
        assert_never(rule)


def rule_to_dict(rule: RecurrenceRule) -> dict[str, Any]:
    """Serialize a rule into the form stored on a series' first row.

    Weekdays are numbered Sunday=0 .. Saturday=6 and emitted sorted.
    """
    data: dict[str, Any]
    if isinstance(rule, Daily):
        data = {"occurrence_type": "daily"}
    elif isinstance(rule, Weekly):
        data = {"occurrence_type": "weekly"}
        if rule.days:
            data["day_of_week"] = sorted(day_to_platform(d) for d in rule.days)
    elif isinstance(rule, Monthly):
        data = {"occurrence_type": "monthly"}
        if rule.day_of_month is not None:
            data["day_of_month"] = rule.day_of_month
    else:
        assert_never(rule)

    if rule.recurrence_end is not None:
        data["recurrence_end_date"] = rule.recurrence_end.isoformat()
    return data


def rule_from_dict(data: dict[str, Any]) -> RecurrenceRule:
    """Rebuild a rule from its stored form.

    Raises:
        ValueError: If occurrence_type is unknown or a field is malformed
    """
    raw_end = data.get("recurrence_end_date")
    try:
        recurrence_end = (
            raw_end
            if raw_end is None or isinstance(raw_end, date)
            else date.fromisoformat(raw_end)
        )
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid recurrence_end_date: {raw_end!r}") from e

    occurrence_type = data.get("occurrence_type")
    if occurrence_type == "daily":
        return Daily(recurrence_end=recurrence_end)
    if occurrence_type == "weekly":
        numbers = data.get("day_of_week") or []
        try:
            days = frozenset(day_from_platform(int(n)) for n in numbers)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid day_of_week: {numbers!r}") from e
        return Weekly(days=days, recurrence_end=recurrence_end)
    if occurrence_type == "monthly":
        raw_day = data.get("day_of_month")
        try:
            day_of_month = int(raw_day) if raw_day is not None else None
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid day_of_month: {raw_day!r}") from e
        return Monthly(day_of_month=day_of_month, recurrence_end=recurrence_end)
    raise ValueError(
        f"Unknown occurrence_type: {occurrence_type!r}\n"
        f"Valid types: daily, weekly, monthly"
    )


__all__ = [
    "Daily",
    "Weekly",
    "Monthly",
    "RecurrenceRule",
    "ExpansionLimits",
    "DEFAULT_LIMITS",
    "expand",
    "rule_to_dict",
    "rule_from_dict",
]
