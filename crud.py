# crud.py
"""
Persistence operations for events and recurring events (the "admin events"
collaborator the scheduler writes through).
"""

from datetime import date as _date
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy import or_

from models import Event, RecurringEvent, EVENT_STATUSES, RECURRING_STATUSES
from scheduler.recurrence import parse, serialize


def _columns(model) -> set:
    return set(model.__table__.columns.keys())


def _paginate(qry, page: int, per_page: int):
    page = max(1, int(page or 1))
    per_page = max(1, int(per_page or 1))
    total = qry.count()
    rows = qry.offset((page - 1) * per_page).limit(per_page).all()
    return rows, total


def _search_filter(model, term: str):
    like = f"%{term.strip()}%"
    return or_(
        model.title.ilike(like),
        model.description.ilike(like),
        model.location.ilike(like),
    )


# ------------------------
# Events: READ
# ------------------------

def get_event_by_id(db: Session, event_id: int) -> Optional[Event]:
    """Fetch a single event by primary key."""
    return db.get(Event, event_id)


def list_events(
    db: Session,
    *,
    page: int = 1,
    per_page: int = 20,
    upcoming: bool = False,
    status: Optional[str] = None,
    search: Optional[str] = None,
    today: Optional[_date] = None,
) -> Tuple[List[Event], int]:
    """Return (page_of_events, total_count), ordered by date then time."""
    qry = db.query(Event)
    if upcoming:
        qry = qry.filter(Event.event_date >= (today or _date.today()))
    if status:
        qry = qry.filter(Event.status == status)
    if search and search.strip():
        qry = qry.filter(_search_filter(Event, search))
    qry = qry.order_by(Event.event_date, Event.event_time, Event.id)
    return _paginate(qry, page, per_page)


def list_events_by_recurring_id(db: Session, recurring_event_id: int) -> List[Event]:
    """All events generated from one recurring pattern, oldest first."""
    return (
        db.query(Event)
        .filter(Event.source_recurring_event_id == recurring_event_id)
        .order_by(Event.event_date)
        .all()
    )


# ------------------------
# Events: WRITE
# ------------------------

def create_event(db: Session, *, title: str, event_date: _date, **kwargs) -> Event:
    """
    Create and persist a single event. Unknown keys are dropped.
    Raises ValueError for an unknown status.
    """
    safe_kwargs = {k: v for k, v in kwargs.items() if k in _columns(Event)}
    status = safe_kwargs.get("status") or "upcoming"
    if status not in EVENT_STATUSES:
        raise ValueError(f"Unknown event status: {status!r}")
    safe_kwargs["status"] = status

    ev = Event(title=title, event_date=event_date, **safe_kwargs)
    db.add(ev)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(ev)
    return ev


def update_event(db: Session, event_id: int, **changes) -> Optional[Event]:
    """Apply partial changes. Returns the updated Event or None if not found."""
    ev = db.get(Event, event_id)
    if not ev:
        return None
    if "status" in changes and changes["status"] not in EVENT_STATUSES:
        raise ValueError(f"Unknown event status: {changes['status']!r}")
    allowed = _columns(Event) - {"id", "created_at", "updated_at"}
    for key, value in changes.items():
        if key in allowed:
            setattr(ev, key, value)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(ev)
    return ev


def delete_event(db: Session, event_id: int) -> bool:
    ev = db.get(Event, event_id)
    if not ev:
        return False
    db.delete(ev)
    db.commit()
    return True


def bulk_delete_events(db: Session, ids: Iterable[int]) -> int:
    ids = [int(i) for i in ids or []]
    if not ids:
        return 0
    count = (
        db.query(Event)
        .filter(Event.id.in_(ids))
        .delete(synchronize_session=False)
    )
    db.commit()
    return int(count or 0)


# ------------------------
# Recurring events
# ------------------------

def _normalize_rrule(text: str) -> str:
    """Parse (raising MalformedRuleError) and store the canonical form."""
    return serialize(parse(text))


def get_recurring_event_by_id(db: Session, recurring_event_id: int) -> Optional[RecurringEvent]:
    return db.get(RecurringEvent, recurring_event_id)


def list_recurring_events(
    db: Session,
    *,
    page: int = 1,
    per_page: int = 20,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> Tuple[List[RecurringEvent], int]:
    qry = db.query(RecurringEvent)
    if status:
        qry = qry.filter(RecurringEvent.status == status)
    if search and search.strip():
        qry = qry.filter(_search_filter(RecurringEvent, search))
    qry = qry.order_by(RecurringEvent.dtstart, RecurringEvent.id)
    return _paginate(qry, page, per_page)


def create_recurring_event(
    db: Session,
    *,
    title: str,
    rrule: str,
    dtstart: _date,
    **kwargs,
) -> RecurringEvent:
    """
    Create a recurring pattern. The rule is validated and stored in canonical
    form; raises MalformedRuleError / InvalidDayOfMonthError if it is bad.
    """
    safe_kwargs = {k: v for k, v in kwargs.items() if k in _columns(RecurringEvent)}
    status = safe_kwargs.get("status") or "active"
    if status not in RECURRING_STATUSES:
        raise ValueError(f"Unknown recurring event status: {status!r}")
    safe_kwargs["status"] = status

    rec = RecurringEvent(title=title, rrule=_normalize_rrule(rrule), dtstart=dtstart, **safe_kwargs)
    db.add(rec)
    db.commit()
    db.refresh(rec)
    return rec


def update_recurring_event(db: Session, recurring_event_id: int, **changes) -> Optional[RecurringEvent]:
    """
    Partial update. Editing rrule/dtstart only affects future generation;
    events already generated are left as they are.
    """
    rec = db.get(RecurringEvent, recurring_event_id)
    if not rec:
        return None
    if "rrule" in changes and changes["rrule"] is not None:
        changes["rrule"] = _normalize_rrule(changes["rrule"])
    if "status" in changes and changes["status"] not in RECURRING_STATUSES:
        raise ValueError(f"Unknown recurring event status: {changes['status']!r}")
    allowed = _columns(RecurringEvent) - {"id", "created_at", "updated_at"}
    for key, value in changes.items():
        if key in allowed and not (key in ("rrule", "dtstart", "title") and value is None):
            setattr(rec, key, value)
    db.commit()
    db.refresh(rec)
    return rec


def _detach_generated(db: Session, ids: List[int]) -> None:
    # generated events outlive their pattern as ordinary events
    (
        db.query(Event)
        .filter(Event.source_recurring_event_id.in_(ids))
        .update({Event.source_recurring_event_id: None}, synchronize_session=False)
    )


def delete_recurring_event(db: Session, recurring_event_id: int) -> bool:
    rec = db.get(RecurringEvent, recurring_event_id)
    if not rec:
        return False
    _detach_generated(db, [rec.id])
    db.delete(rec)
    db.commit()
    return True


def bulk_delete_recurring_events(db: Session, ids: Iterable[int]) -> int:
    ids = [int(i) for i in ids or []]
    if not ids:
        return 0
    _detach_generated(db, ids)
    count = (
        db.query(RecurringEvent)
        .filter(RecurringEvent.id.in_(ids))
        .delete(synchronize_session=False)
    )
    db.commit()
    return int(count or 0)


# ------------------------
# Store adapter for the materializer
# ------------------------

class DatabaseEventStore:
    """Exposes the two capabilities EventMaterializer needs on a Session."""

    def __init__(self, db: Session):
        self.db = db

    def list_events_by_recurring_id(self, recurring_event_id: int) -> List[Event]:
        return list_events_by_recurring_id(self.db, recurring_event_id)

    def create_event(self, **fields) -> Event:
        return create_event(self.db, **fields)
