# tests/conftest.py
import os

# Must be set before models/config are imported anywhere.
os.environ["EVENTS_DB_URL"] = "sqlite://"
os.environ.setdefault("EVENTS_LOG_LEVEL", "WARNING")

from datetime import date, time
from types import SimpleNamespace

import pytest

import models


@pytest.fixture
def db():
    """Fresh in-memory schema per test."""
    models.Base.metadata.drop_all(bind=models.engine)
    models.ensure_schema()
    session = models.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    from app import app as flask_app

    flask_app.config.update(TESTING=True)
    with flask_app.test_client() as c:
        yield c


class FakeEventStore:
    """In-memory stand-in for the events backend; can be told to start failing."""

    def __init__(self, events=None, fail_after=None):
        self.events = list(events or [])
        self.fail_after = fail_after
        self.created = 0

    def list_events_by_recurring_id(self, recurring_event_id):
        return [e for e in self.events if e.source_recurring_event_id == recurring_event_id]

    def create_event(self, **fields):
        if self.fail_after is not None and self.created >= self.fail_after:
            raise RuntimeError("backend rejected the event")
        ev = SimpleNamespace(id=len(self.events) + 1, **fields)
        self.events.append(ev)
        self.created += 1
        return ev


@pytest.fixture
def store():
    return FakeEventStore()


@pytest.fixture
def sunday_mass():
    return SimpleNamespace(
        id=7,
        title="Sunday Holy Mass",
        description="Weekly parish mass",
        location="Main Church",
        event_time=time(9, 30),
        featured_image_url=None,
        rrule="FREQ=WEEKLY;INTERVAL=1;BYDAY=SU",
        dtstart=date(2024, 1, 1),
        status="active",
    )
