# models.py
from __future__ import annotations

from typing import List, Set

from sqlalchemy import (
    create_engine,
    inspect,
    Column,
    Integer,
    Date,
    Time,
    String,
    Text,
    DateTime,
    func,
    ForeignKey,
    Index,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, relationship
from sqlalchemy.pool import StaticPool

import config

EVENT_STATUSES = ("upcoming", "completed", "cancelled")
RECURRING_STATUSES = ("active", "paused", "cancelled")


def make_engine(url: str) -> Engine:
    """SQLite needs check_same_thread off for Flask; in-memory DBs share one connection."""
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


engine = make_engine(config.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

Base = declarative_base()


def _iso(v):
    return v.isoformat() if v is not None else None


class RecurringEvent(Base):
    __tablename__ = "recurring_events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    location = Column(String(200), nullable=True)
    event_time = Column(Time, nullable=True)
    featured_image_url = Column(String(500), nullable=True)

    rrule = Column(String(255), nullable=False)      # e.g. FREQ=WEEKLY;INTERVAL=1;BYDAY=SU
    dtstart = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="active", index=True)

    created_at = Column(DateTime, nullable=True, server_default=func.now())
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())

    events = relationship("Event", back_populates="source_recurring_event")

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<RecurringEvent(id={self.id!r}, title={self.title!r}, "
            f"rrule={self.rrule!r}, dtstart={self.dtstart!r}, status={self.status!r})>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "event_time": self.event_time.strftime("%H:%M") if self.event_time else None,
            "featured_image_url": self.featured_image_url,
            "rrule": self.rrule,
            "dtstart": _iso(self.dtstart),
            "status": self.status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Event(Base):
    __tablename__ = "events"
    # One generated event per (pattern, day). NULLs are distinct, so manual
    # events (no source pattern) never collide.
    __table_args__ = (
        Index("uq_events_source_date", "source_recurring_event_id", "event_date", unique=True),
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    location = Column(String(200), nullable=True)
    event_date = Column(Date, nullable=False, index=True)
    event_time = Column(Time, nullable=True)
    featured_image_url = Column(String(500), nullable=True)
    status = Column(String(20), nullable=False, default="upcoming", index=True)

    source_recurring_event_id = Column(
        Integer,
        ForeignKey("recurring_events.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at = Column(DateTime, nullable=True, server_default=func.now())
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())

    source_recurring_event = relationship("RecurringEvent", back_populates="events")

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Event(id={self.id!r}, title={self.title!r}, event_date={self.event_date!r}, "
            f"source_recurring_event_id={self.source_recurring_event_id!r})>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "event_date": _iso(self.event_date),
            "event_time": self.event_time.strftime("%H:%M") if self.event_time else None,
            "featured_image_url": self.featured_image_url,
            "status": self.status,
            "source_recurring_event_id": self.source_recurring_event_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# ----------------------------
# Utilities
# ----------------------------
def init_db(bind: Engine = None) -> None:
    """
    Creates tables if they don't exist.
    Existing tables are not altered; see ensure_schema() for additive upgrades.
    """
    Base.metadata.create_all(bind=bind or engine)


def _existing_columns(bind: Engine, table_name: str) -> Set[str]:
    return {c["name"] for c in inspect(bind).get_columns(table_name)}


def ensure_schema(bind: Engine = None) -> None:
    """
    Bring an older events table up to date: adds the optional columns and the
    (source_recurring_event_id, event_date) unique index if missing.
    Re-runnable (no-ops if already applied).
    """
    bind = bind or engine
    Base.metadata.create_all(bind=bind)

    cols = _existing_columns(bind, "events")
    to_add: List[str] = []

    desired = {
        "description": "TEXT",
        "location": "VARCHAR(200)",
        "event_time": "TIME",
        "featured_image_url": "VARCHAR(500)",
        "status": "VARCHAR(20) DEFAULT 'upcoming'",
        "source_recurring_event_id": "INTEGER REFERENCES recurring_events(id)",
        "created_at": "DATETIME",
        "updated_at": "DATETIME",
    }

    for name, ddl in desired.items():
        if name not in cols:
            to_add.append(f"ALTER TABLE events ADD COLUMN {name} {ddl};")

    with bind.begin() as conn:
        for stmt in to_add:
            conn.exec_driver_sql(stmt)
        conn.exec_driver_sql(
            "CREATE UNIQUE INDEX IF NOT EXISTS uq_events_source_date "
            "ON events (source_recurring_event_id, event_date);"
        )
