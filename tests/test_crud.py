"""Tests for event / recurring event persistence."""

from datetime import date, time

import pytest
from sqlalchemy.exc import IntegrityError

import crud
from models import Event
from scheduler.errors import InvalidDayOfMonthError, MalformedRuleError


def _seed_events(db):
    for day, title in [(3, "Choir practice"), (10, "Youth meeting"), (17, "Choir concert"), (24, "Bible study")]:
        crud.create_event(db, title=title, event_date=date(2024, 1, day), location="Parish Hall")


def test_create_event_defaults(db):
    ev = crud.create_event(db, title="Feast Day", event_date=date(2024, 8, 15), query="ignored")
    assert ev.id is not None
    assert ev.status == "upcoming"
    assert ev.source_recurring_event_id is None


def test_create_event_rejects_unknown_status(db):
    with pytest.raises(ValueError):
        crud.create_event(db, title="Feast Day", event_date=date(2024, 8, 15), status="someday")


def test_list_events_paginates_and_searches(db):
    _seed_events(db)
    rows, total = crud.list_events(db, page=2, per_page=3)
    assert total == 4
    assert [e.title for e in rows] == ["Bible study"]

    rows, total = crud.list_events(db, search="choir")
    assert total == 2

    rows, total = crud.list_events(db, upcoming=True, today=date(2024, 1, 15))
    assert [e.event_date.day for e in rows] == [17, 24]


def test_update_and_delete_event(db):
    ev = crud.create_event(db, title="Feast", event_date=date(2024, 8, 15))
    updated = crud.update_event(db, ev.id, title="Assumption Feast", event_time=time(10, 0))
    assert updated.title == "Assumption Feast"
    assert updated.event_time == time(10, 0)
    assert crud.update_event(db, 999, title="x") is None

    assert crud.delete_event(db, ev.id) is True
    assert crud.delete_event(db, ev.id) is False


def test_bulk_delete_events(db):
    _seed_events(db)
    ids = [e.id for e in db.query(Event).all()][:2]
    assert crud.bulk_delete_events(db, ids) == 2
    assert db.query(Event).count() == 2
    assert crud.bulk_delete_events(db, []) == 0


def test_generated_events_are_unique_per_day(db):
    rec = crud.create_recurring_event(db, title="Mass", rrule="FREQ=DAILY", dtstart=date(2024, 1, 1))
    crud.create_event(db, title="Mass", event_date=date(2024, 1, 1), source_recurring_event_id=rec.id)
    with pytest.raises(IntegrityError):
        crud.create_event(db, title="Mass", event_date=date(2024, 1, 1), source_recurring_event_id=rec.id)
    # manual events share dates freely
    crud.create_event(db, title="Manual", event_date=date(2024, 1, 1))
    crud.create_event(db, title="Manual 2", event_date=date(2024, 1, 1))


def test_create_recurring_event_stores_canonical_rule(db):
    rec = crud.create_recurring_event(
        db, title="Sunday Mass", rrule="RRULE:FREQ=WEEKLY;BYDAY=SU", dtstart=date(2024, 1, 1),
    )
    assert rec.rrule == "FREQ=WEEKLY;INTERVAL=1;BYDAY=SU"
    assert rec.status == "active"


def test_create_recurring_event_rejects_bad_rules(db):
    with pytest.raises(MalformedRuleError):
        crud.create_recurring_event(db, title="x", rrule="INTERVAL=2", dtstart=date(2024, 1, 1))
    with pytest.raises(InvalidDayOfMonthError):
        crud.create_recurring_event(db, title="x", rrule="FREQ=MONTHLY;BYMONTHDAY=40", dtstart=date(2024, 1, 1))


def test_update_recurring_event(db):
    rec = crud.create_recurring_event(db, title="Mass", rrule="FREQ=DAILY", dtstart=date(2024, 1, 1))
    updated = crud.update_recurring_event(db, rec.id, rrule="freq=weekly;byday=sa", status="paused")
    assert updated.rrule == "FREQ=WEEKLY;INTERVAL=1;BYDAY=SA"
    assert updated.status == "paused"
    with pytest.raises(ValueError):
        crud.update_recurring_event(db, rec.id, status="archived")


def test_list_recurring_events_filters(db):
    crud.create_recurring_event(db, title="Sunday Mass", rrule="FREQ=WEEKLY;BYDAY=SU", dtstart=date(2024, 1, 1))
    crud.create_recurring_event(db, title="Novena", rrule="FREQ=DAILY;COUNT=9", dtstart=date(2024, 1, 1),
                                status="paused")
    rows, total = crud.list_recurring_events(db, status="paused")
    assert total == 1 and rows[0].title == "Novena"
    rows, total = crud.list_recurring_events(db, search="mass")
    assert [r.title for r in rows] == ["Sunday Mass"]


def test_deleting_pattern_keeps_generated_events(db):
    rec = crud.create_recurring_event(db, title="Mass", rrule="FREQ=DAILY", dtstart=date(2024, 1, 1))
    ev = crud.create_event(db, title="Mass", event_date=date(2024, 1, 1), source_recurring_event_id=rec.id)
    assert crud.delete_recurring_event(db, rec.id) is True
    db.expire_all()
    kept = crud.get_event_by_id(db, ev.id)
    assert kept is not None
    assert kept.source_recurring_event_id is None
    assert crud.delete_recurring_event(db, rec.id) is False


def test_bulk_delete_recurring_events(db):
    ids = [
        crud.create_recurring_event(db, title=f"Pattern {i}", rrule="FREQ=DAILY", dtstart=date(2024, 1, 1)).id
        for i in range(3)
    ]
    assert crud.bulk_delete_recurring_events(db, ids[:2]) == 2
    rows, total = crud.list_recurring_events(db)
    assert total == 1


def test_db_session_sees_committed_rows(db):
    from database import db_session

    crud.create_event(db, title="Feast", event_date=date(2024, 8, 15))
    with db_session() as other:
        assert [e.title for e in other.query(Event).all()] == ["Feast"]
