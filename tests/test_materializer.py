"""Tests for turning recurring patterns into dated events."""

from datetime import date, time
from types import SimpleNamespace

import pytest

from conftest import FakeEventStore
from scheduler.errors import MalformedRuleError, MaterializationPartialFailure, PatternNotActiveError
from scheduler.materializer import EventMaterializer, default_horizon

JAN_31 = date(2024, 1, 31)
JAN_SUNDAYS = [date(2024, 1, 7), date(2024, 1, 14), date(2024, 1, 21), date(2024, 1, 28)]


def _dates(events):
    return sorted(e.event_date for e in events)


def test_creates_one_event_per_occurrence(store, sunday_mass):
    created = EventMaterializer(store).materialize(sunday_mass, JAN_31)
    assert created == 4
    assert _dates(store.events) == JAN_SUNDAYS


def test_copies_pattern_fields(store, sunday_mass):
    EventMaterializer(store).materialize(sunday_mass, JAN_31)
    ev = store.events[0]
    assert ev.title == "Sunday Holy Mass"
    assert ev.description == "Weekly parish mass"
    assert ev.location == "Main Church"
    assert ev.event_time == time(9, 30)
    assert ev.featured_image_url is None
    assert ev.source_recurring_event_id == 7


def test_second_call_is_a_no_op(store, sunday_mass):
    m = EventMaterializer(store)
    assert m.materialize(sunday_mass, JAN_31) == 4
    assert m.materialize(sunday_mass, JAN_31) == 0
    assert len(store.events) == 4


def test_extending_horizon_only_adds_new_dates(store, sunday_mass):
    m = EventMaterializer(store)
    m.materialize(sunday_mass, date(2024, 1, 14))
    assert m.materialize(sunday_mass, JAN_31) == 2
    assert _dates(store.events) == JAN_SUNDAYS


def test_manual_event_on_same_day_is_left_alone(sunday_mass):
    manual = SimpleNamespace(id=1, title="Parish Feast", event_date=date(2024, 1, 14),
                             source_recurring_event_id=None)
    store = FakeEventStore(events=[manual])
    created = EventMaterializer(store).materialize(sunday_mass, JAN_31)
    assert created == 4
    assert store.events[0] is manual
    assert manual.title == "Parish Feast"
    assert manual.source_recurring_event_id is None
    assert [e.event_date for e in store.events].count(date(2024, 1, 14)) == 2


def test_other_patterns_events_do_not_block(sunday_mass):
    other = SimpleNamespace(id=1, title="Other", event_date=date(2024, 1, 7), source_recurring_event_id=99)
    store = FakeEventStore(events=[other])
    assert EventMaterializer(store).materialize(sunday_mass, JAN_31) == 4


def test_previously_generated_date_is_not_duplicated(sunday_mass):
    edited = SimpleNamespace(id=1, title="Mass (moved to hall)", event_date=date(2024, 1, 14),
                             source_recurring_event_id=7)
    store = FakeEventStore(events=[edited])
    assert EventMaterializer(store).materialize(sunday_mass, JAN_31) == 3
    assert edited.title == "Mass (moved to hall)"


def test_paused_pattern_is_rejected(store, sunday_mass):
    sunday_mass.status = "paused"
    with pytest.raises(PatternNotActiveError):
        EventMaterializer(store).materialize(sunday_mass, JAN_31)
    assert store.events == []


def test_malformed_rule_creates_nothing(store, sunday_mass):
    sunday_mass.rrule = "INTERVAL=2"
    with pytest.raises(MalformedRuleError):
        EventMaterializer(store).materialize(sunday_mass, JAN_31)
    assert store.events == []


def test_partial_failure_reports_progress(sunday_mass):
    store = FakeEventStore(fail_after=2)
    with pytest.raises(MaterializationPartialFailure) as exc:
        EventMaterializer(store).materialize(sunday_mass, JAN_31)
    assert exc.value.created == 2
    assert isinstance(exc.value.cause, RuntimeError)
    assert len(store.events) == 2

    # a retry picks up where it stopped
    store.fail_after = None
    assert EventMaterializer(store).materialize(sunday_mass, JAN_31) == 2
    assert _dates(store.events) == JAN_SUNDAYS


def test_rule_count_bounds_generation(store, sunday_mass):
    sunday_mass.rrule = "FREQ=WEEKLY;BYDAY=SU;COUNT=3"
    assert EventMaterializer(store).materialize(sunday_mass, date(2025, 1, 1)) == 3


def test_default_horizon_uses_configured_months(store, sunday_mass):
    m = EventMaterializer(store, horizon_months=1, today=lambda: date(2024, 1, 1))
    assert m.resolve_horizon() == date(2024, 2, 1)
    assert m.materialize(sunday_mass) == 4


def test_default_horizon_clamps_month_end():
    assert default_horizon(date(2024, 11, 30), 3) == date(2025, 2, 28)


def test_pending_dates_is_read_only(store, sunday_mass):
    pending = EventMaterializer(store).pending_dates(sunday_mass, JAN_31)
    assert pending == JAN_SUNDAYS
    assert store.events == []


def test_accepts_iso_timestamp_dtstart(store, sunday_mass):
    sunday_mass.dtstart = "2024-01-01T00:00:00.000Z"
    assert EventMaterializer(store).materialize(sunday_mass, JAN_31) == 4


# ---------------------------------------------------------------------------
# against the real database
# ---------------------------------------------------------------------------


def test_database_round_trip(db):
    from crud import DatabaseEventStore, create_event, create_recurring_event, list_events_by_recurring_id

    rec = create_recurring_event(db, title="Sunday Holy Mass", rrule="FREQ=WEEKLY;BYDAY=SU",
                                 dtstart=date(2024, 1, 1), event_time=time(9, 30))
    manual = create_event(db, title="Parish Feast", event_date=date(2024, 1, 14))

    m = EventMaterializer(DatabaseEventStore(db))
    assert m.materialize(rec, JAN_31) == 4
    assert m.materialize(rec, JAN_31) == 0

    generated = list_events_by_recurring_id(db, rec.id)
    assert [e.event_date for e in generated] == JAN_SUNDAYS
    assert all(e.event_time == time(9, 30) for e in generated)

    db.refresh(manual)
    assert manual.title == "Parish Feast"
    assert manual.source_recurring_event_id is None
