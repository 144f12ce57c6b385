"""Tests for SeriesMutator.create and SeriesMutator.update_future."""

from datetime import date, datetime, timedelta, timezone
from itertools import count

import pytest

from eventseries import (
    EventDraft,
    EventPatch,
    EventRow,
    ExpansionError,
    ExpansionLimits,
    Monthly,
    NotInSeriesError,
    SeriesMutator,
    StoreError,
    Weekly,
)
from eventseries.mutable.memory import MemoryEventStore, store

ORG = "org-123"
NOW = datetime(2026, 3, 15, 12, tzinfo=timezone.utc)
WEEKLY_RULE = Weekly(days=frozenset({"monday"}), recurrence_end=date(2026, 4, 6))


def _draft(**overrides) -> EventDraft:
    fields = {
        "organization_id": ORG,
        "title": "Weekly Practice",
        "description": "Team practice",
        "start": datetime(2026, 3, 9, 18, tzinfo=timezone.utc),
        "end": datetime(2026, 3, 9, 19, tzinfo=timezone.utc),
        "location": "Field A",
        "event_type": "general",
        "is_philanthropy": False,
        "created_by_user_id": "user-1",
    }
    return EventDraft(**(fields | overrides))


def _sequential_ids(prefix: str = "group"):
    counter = count(1)
    return lambda: f"{prefix}-{next(counter)}"


def _series_row(id: str, index: int, start: datetime, **kw) -> EventRow:
    return EventRow(
        id=id,
        organization_id=ORG,
        title="Practice",
        start=start,
        recurrence_group_id="group-abc",
        recurrence_index=index,
        **kw,
    )


# create


def test_create_shares_injected_group_id():
    """Test that every instance carries the one group id generated for the call."""
    mem = MemoryEventStore()
    mutator = SeriesMutator(mem, id_factory=_sequential_ids())

    result = mutator.create(_draft(), WEEKLY_RULE)

    assert result.success
    assert result.error is None
    assert result.group_id == "group-1"
    rows = mem.rows()
    assert len(rows) == 5
    assert {row.recurrence_group_id for row in rows} == {"group-1"}


def test_create_numbers_positions_from_zero():
    """Test contiguous positions matching chronological order."""
    mem = MemoryEventStore()
    SeriesMutator(mem).create(_draft(), WEEKLY_RULE)

    rows = mem.rows()
    assert [row.recurrence_index for row in rows] == [0, 1, 2, 3, 4]
    assert [row.start for row in rows] == sorted(row.start for row in rows)


def test_create_stores_rule_on_first_row_only():
    """Test that only position 0 holds the serialized rule."""
    mem = MemoryEventStore()
    SeriesMutator(mem).create(_draft(), WEEKLY_RULE)

    first, *rest = mem.rows()
    assert first.recurrence_rule == {
        "occurrence_type": "weekly",
        "day_of_week": [1],
        "recurrence_end_date": "2026-04-06",
    }
    assert all(row.recurrence_rule is None for row in rest)


def test_create_copies_event_details():
    """Test that anchor fields reach every row and the duration is kept."""
    mem = MemoryEventStore()
    SeriesMutator(mem).create(_draft(target_user_ids=["u1", "u2"]), WEEKLY_RULE)

    rows = mem.rows()
    for row in rows:
        assert row.title == "Weekly Practice"
        assert row.description == "Team practice"
        assert row.location == "Field A"
        assert row.organization_id == ORG
        assert row.created_by_user_id == "user-1"
        assert row.audience == "both"
        assert row.end - row.start == timedelta(hours=1)
        assert row.deleted_at is None
        assert row.target_user_ids == ["u1", "u2"]
    assert rows[0].target_user_ids is not rows[1].target_user_ids


def test_create_returns_unique_ids_in_position_order():
    """Test the returned identities."""
    mem = MemoryEventStore()

    result = SeriesMutator(mem).create(_draft(), WEEKLY_RULE)

    assert len(set(result.event_ids)) == 5
    assert result.event_ids == [row.id for row in mem.list_series(result.group_id, ORG)]


def test_create_defaults_to_uuid_group_ids():
    """Test that two series get distinct generated identities."""
    mutator = SeriesMutator(MemoryEventStore())

    first = mutator.create(_draft(), WEEKLY_RULE)
    second = mutator.create(_draft(), WEEKLY_RULE)

    assert first.group_id and second.group_id
    assert first.group_id != second.group_id


def test_create_with_empty_expansion_never_touches_store():
    """Test that a rule yielding nothing fails before any write."""
    mem = MemoryEventStore()
    ids = _sequential_ids()
    # The 5th is already past on the 20th and April 5th is after the end date
    rule = Monthly(day_of_month=5, recurrence_end=date(2026, 3, 31))

    result = SeriesMutator(mem, id_factory=ids).create(
        _draft(start=datetime(2026, 3, 20, 10, tzinfo=timezone.utc), end=None), rule
    )

    assert not result.success
    assert isinstance(result.error, ExpansionError)
    assert result.group_id is None
    assert result.event_ids == []
    assert mem.rows() == []
    # the identity generator was not consumed
    assert ids() == "group-1"


def test_create_reports_store_error_verbatim():
    """Test that a failed bulk insert comes back as-is with nothing stored."""
    mem = MemoryEventStore()
    error = StoreError("insert violates row-level security policy")
    mem.fail_next("bulk_insert", error)

    result = SeriesMutator(mem).create(_draft(), WEEKLY_RULE)

    assert not result.success
    assert result.error is error
    assert mem.rows() == []


def test_create_respects_limits():
    """Test that the mutator expands with the limits it was built with."""
    mem = MemoryEventStore()

    result = SeriesMutator(mem, limits=ExpansionLimits(weekly_cap=2)).create(
        _draft(), WEEKLY_RULE
    )

    assert len(result.event_ids) == 2


def test_create_monthly_series_keeps_duration_through_clamping():
    """Test a monthly series from Jan 31 with a 90 minute anchor."""
    mem = MemoryEventStore()
    start = datetime(2026, 1, 31, 17, tzinfo=timezone.utc)

    SeriesMutator(mem).create(
        _draft(start=start, end=start + timedelta(minutes=90)),
        Monthly(recurrence_end=date(2026, 3, 31)),
    )

    rows = mem.rows()
    assert [row.start.date() for row in rows] == [
        date(2026, 1, 31),
        date(2026, 2, 28),
        date(2026, 3, 31),
    ]
    assert {row.end - row.start for row in rows} == {timedelta(minutes=90)}


# update_future


@pytest.fixture
def seeded() -> MemoryEventStore:
    """Four weekly rows: two already past, two still ahead of NOW."""
    return store(
        _series_row("e1", 0, NOW - timedelta(days=7)),
        _series_row("e2", 1, NOW - timedelta(days=3)),
        _series_row("e3", 2, NOW + timedelta(days=3)),
        _series_row("e4", 3, NOW + timedelta(days=7)),
    )


def test_update_future_changes_this_and_later_rows(seeded):
    """Test that the named row and later rows change, earlier ones don't."""
    result = SeriesMutator(seeded).update_future(
        "e3", ORG, EventPatch(title="Updated Practice"), now=NOW
    )

    assert result.success
    assert result.updated_ids == ["e3", "e4"]
    titles = {row.id: row.title for row in seeded.rows()}
    assert titles == {
        "e1": "Practice",
        "e2": "Practice",
        "e3": "Updated Practice",
        "e4": "Updated Practice",
    }


def test_update_future_from_past_row_touches_only_upcoming(seeded):
    """Test that a past starting row is itself left alone."""
    result = SeriesMutator(seeded).update_future(
        "e1", ORG, EventPatch(location="Gym"), now=NOW
    )

    assert result.updated_ids == ["e3", "e4"]
    assert seeded.get("e1").location is None


def test_update_future_skips_past_row_at_later_position():
    """Test that a later position whose start has passed keeps its values."""
    mem = store(
        _series_row("e1", 0, NOW - timedelta(days=7)),
        _series_row("e2", 1, NOW + timedelta(days=1)),
        # moved earlier by hand, now already past
        _series_row("e3", 2, NOW - timedelta(hours=1)),
        _series_row("e4", 3, NOW + timedelta(days=7)),
    )

    result = SeriesMutator(mem).update_future(
        "e2", ORG, EventPatch(title="Renamed"), now=NOW
    )

    assert result.updated_ids == ["e2", "e4"]
    assert mem.get("e3").title == "Practice"


def test_update_future_applies_only_set_fields(seeded):
    """Test that fields left unset in the patch keep their stored values."""
    seeded.update_where(
        "group-abc", ORG, position_gte=0, start_gte=None, patch={"location": "Field A"}
    )

    SeriesMutator(seeded).update_future(
        "e3",
        ORG,
        EventPatch(event_type="philanthropy", is_philanthropy=True),
        now=NOW,
    )

    e4 = seeded.get("e4")
    assert (e4.title, e4.location, e4.event_type, e4.is_philanthropy) == (
        "Practice",
        "Field A",
        "philanthropy",
        True,
    )


def test_update_future_ignores_deleted_rows(seeded):
    """Test that soft-deleted rows are outside the update."""
    seeded.soft_delete_one("e4", ORG, deleted_at=NOW)

    result = SeriesMutator(seeded).update_future(
        "e3", ORG, EventPatch(title="X"), now=NOW
    )

    assert result.updated_ids == ["e3"]
    assert seeded.get("e4").title == "Practice"


def test_update_future_accepts_naive_now(seeded):
    """Test that a naive now is read as UTC."""
    result = SeriesMutator(seeded).update_future(
        "e1", ORG, EventPatch(title="X"), now=NOW.replace(tzinfo=None)
    )

    assert result.updated_ids == ["e3", "e4"]


@pytest.mark.parametrize("event_id", ["solo", "missing", "deleted", "foreign"])
def test_update_future_requires_live_series_event(event_id):
    """Test the not-part-of-a-series failure for every way of missing."""
    mem = store(
        EventRow(id="solo", organization_id=ORG, title="Solo", start=NOW),
        _series_row("deleted", 0, NOW + timedelta(days=1), deleted_at=NOW),
        EventRow(
            id="foreign",
            organization_id="org-other",
            title="Theirs",
            start=NOW,
            recurrence_group_id="group-abc",
            recurrence_index=1,
        ),
    )

    result = SeriesMutator(mem).update_future(
        event_id, ORG, EventPatch(title="X"), now=NOW
    )

    assert not result.success
    assert isinstance(result.error, NotInSeriesError)
    assert "not part of a series" in str(result.error)
    assert result.updated_ids == []


def test_update_future_reports_store_error(seeded):
    """Test that a failed update comes back verbatim."""
    error = StoreError("timeout")
    seeded.fail_next("update_where", error)

    result = SeriesMutator(seeded).update_future(
        "e3", ORG, EventPatch(title="X"), now=NOW
    )

    assert not result.success
    assert result.error is error
    assert seeded.get("e3").title == "Practice"


def test_empty_patch_is_rejected():
    """Test that a patch must change something."""
    with pytest.raises(ValueError, match="at least one field"):
        EventPatch()


def test_naive_row_times_are_stored_as_utc():
    """Test that rows seeded with naive starts compare cleanly against now."""
    naive = datetime(2026, 3, 20, 18)
    mem = store(
        *(
            EventRow(
                id=f"e{i}",
                organization_id=ORG,
                title="Practice",
                start=naive + timedelta(days=7 * i),
                recurrence_group_id="group-abc",
                recurrence_index=i,
            )
            for i in range(3)
        )
    )

    result = SeriesMutator(mem).update_future(
        "e0", ORG, EventPatch(title="X"), now=NOW
    )

    assert result.success
    assert result.updated_ids == ["e0", "e1", "e2"]
    assert mem.get("e0").start == datetime(2026, 3, 20, 18, tzinfo=timezone.utc)


def test_draft_mixes_naive_and_aware_times():
    """Test that a naive start is read as UTC next to an aware end."""
    draft = _draft(
        start=datetime(2026, 3, 9, 18),
        end=datetime(2026, 3, 9, 19, tzinfo=timezone.utc),
    )

    assert draft.start == datetime(2026, 3, 9, 18, tzinfo=timezone.utc)
    assert draft.start.tzinfo is timezone.utc

    with pytest.raises(ValueError, match="must not precede start"):
        _draft(
            start=datetime(2026, 3, 9, 18),
            end=datetime(2026, 3, 9, 17, tzinfo=timezone.utc),
        )


def test_row_deleted_at_is_stored_as_utc():
    """Test that a naive deletion timestamp is read as UTC."""
    row = _series_row("e1", 0, NOW, deleted_at=datetime(2026, 3, 1))

    assert row.deleted_at == datetime(2026, 3, 1, tzinfo=timezone.utc)
