# scripts/seed_events.py
import argparse
import sys
from pathlib import Path
# Ensure project root is importable when running from scripts/
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from datetime import date, time, timedelta
from database import db_session
from models import Event, RecurringEvent
from crud import create_event, create_recurring_event, DatabaseEventStore
from scheduler.materializer import EventMaterializer

SEED_TAG = "[seed]"

PATTERNS = [
    # title, rrule, start offset (days), time, location
    ("Sunday Holy Mass", "FREQ=WEEKLY;INTERVAL=1;BYDAY=SU", 0, time(9, 30), "Main Church"),
    ("Bible Study", "FREQ=WEEKLY;INTERVAL=2;BYDAY=WE", 0, time(19, 0), "Parish Hall"),
    ("Parish Council Meeting", "FREQ=MONTHLY;INTERVAL=1;BYMONTHDAY=15", 0, time(18, 0), "Office"),
    ("Youth Choir Practice", "FREQ=WEEKLY;INTERVAL=1;BYDAY=TU,FR;COUNT=8", 0, time(17, 30), "Choir Loft"),
]


def t(h, m=0): return time(h, m)


def clear(db):
    """Remove previously seeded rows so re-runs don't pile up."""
    ids = [r.id for r in db.query(RecurringEvent).filter(RecurringEvent.description == SEED_TAG)]
    db.query(Event).filter(
        (Event.source_recurring_event_id.in_(ids)) | (Event.description == SEED_TAG)
    ).delete(synchronize_session=False)
    db.query(RecurringEvent).filter(RecurringEvent.id.in_(ids)).delete(synchronize_session=False)
    db.commit()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Seed demo recurring events and generate their dates.")
    parser.add_argument("--start", type=date.fromisoformat, default=date.today(), help="Anchor date (YYYY-MM-DD)")
    parser.add_argument("--weeks", type=int, default=8, help="How far ahead to generate (default 8 weeks)")
    args = parser.parse_args(argv)

    with db_session() as db:
        print("Clearing previously seeded events…")
        clear(db)

        horizon = args.start + timedelta(weeks=args.weeks)
        materializer = EventMaterializer(DatabaseEventStore(db))
        total = 0
        for title, rrule, offset, at, where in PATTERNS:
            rec = create_recurring_event(
                db,
                title=title,
                rrule=rrule,
                dtstart=args.start + timedelta(days=offset),
                event_time=at,
                location=where,
                description=SEED_TAG,
            )
            n = materializer.materialize(rec, horizon)
            print(f"  {title}: {n} event(s)")
            total += n

        # A one-off event on the first generated Sunday, to show manual events coexist
        first_sunday = args.start + timedelta(days=(6 - args.start.weekday()) % 7)
        create_event(db, title="Parish Feast Day", event_date=first_sunday,
                     event_time=t(11), location="Church Grounds", description=SEED_TAG)

        print(f"Seed complete. Generated {total} event(s) through {horizon}.")
        return total

if __name__ == "__main__":
    main()
