# inspect_db.py
from __future__ import annotations

import argparse
from datetime import date as _date, datetime as _dt
from typing import List, Optional

from sqlalchemy import and_

from database import db_session
from models import Event, RecurringEvent
from scheduler.recurrence import humanize


def parse_date(s: Optional[str]) -> Optional[_date]:
    if not s:
        return None
    # Accept YYYY-MM-DD, MM/DD, MM-DD
    for fmt in ("%Y-%m-%d", "%m/%d", "%m-%d"):
        try:
            dt = _dt.strptime(s, fmt)
            # If year missing, assume current year
            year = dt.year if fmt == "%Y-%m-%d" else _date.today().year
            return _date(year, dt.month, dt.day)
        except ValueError:
            continue
    raise argparse.ArgumentTypeError(f"Invalid date: {s}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Print events (and optionally recurring patterns) from the events database."
    )
    parser.add_argument("--from", dest="start", type=parse_date, help="Start date (YYYY-MM-DD or MM/DD)")
    parser.add_argument("--to", dest="end", type=parse_date, help="End date (YYYY-MM-DD or MM/DD)")
    parser.add_argument("--recurring-id", type=int, help="Only events generated from this recurring event")
    parser.add_argument("--patterns", action="store_true", help="List recurring patterns instead of events")
    parser.add_argument("--limit", type=int, default=200, help="Max rows (default 200)")
    return parser


def _print_patterns(db, limit: int) -> None:
    rows = db.query(RecurringEvent).order_by(RecurringEvent.id).limit(limit).all()
    if not rows:
        print("No recurring events found.")
        return
    print(f"{'ID':>3}  {'STATUS':<9}  {'START':<10}  {'PATTERN':<28}  {'TITLE'}")
    print("-" * 78)
    for r in rows:
        print(f"{r.id:>3}  {r.status:<9}  {r.dtstart.isoformat():<10}  {humanize(r.rrule):<28}  {r.title}")
    print("-" * 78)
    print(f"{len(rows)} row(s).")


def main(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)

    with db_session() as db:
        if args.patterns:
            _print_patterns(db, args.limit)
            return

        q = db.query(Event)

        if args.start and args.end:
            q = q.filter(and_(Event.event_date >= args.start, Event.event_date <= args.end))
        elif args.start:
            q = q.filter(Event.event_date >= args.start)
        elif args.end:
            q = q.filter(Event.event_date <= args.end)
        if args.recurring_id is not None:
            q = q.filter(Event.source_recurring_event_id == args.recurring_id)

        q = q.order_by(Event.event_date, Event.event_time).limit(args.limit)
        rows = q.all()

        if not rows:
            rng = ""
            if args.start or args.end:
                rng = f" in range [{args.start or '-∞'} .. {args.end or '+∞'}]"
            print(f"No events found{rng}.")
            return

        print(f"{'ID':>3}  {'DATE':<10}  {'TIME':<5}  {'SRC':>4}  {'TITLE'}")
        print("-" * 70)
        for e in rows:
            when = e.event_time.strftime("%H:%M") if e.event_time else "--:--"
            src = e.source_recurring_event_id if e.source_recurring_event_id is not None else "-"
            print(f"{e.id:>3}  {e.event_date.isoformat():<10}  {when:<5}  {src:>4}  {e.title}")

        print("-" * 70)
        print(f"{len(rows)} row(s).")


if __name__ == "__main__":
    main()
