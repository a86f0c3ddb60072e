"""Tests for the command-line helpers (inspect_db.py, scripts/seed_events.py)."""

import importlib.util
from datetime import date
from pathlib import Path

import crud
import inspect_db

ROOT = Path(__file__).resolve().parents[1]


def _load_seed_module():
    spec = importlib.util.spec_from_file_location("seed_events", ROOT / "scripts" / "seed_events.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_seed_generates_events_and_is_rerunnable(db):
    seed = _load_seed_module()
    assert seed.main(["--start", "2024-01-01", "--weeks", "4"]) == 15
    # second run clears its own rows first
    assert seed.main(["--start", "2024-01-01", "--weeks", "4"]) == 15
    rows, total = crud.list_recurring_events(db)
    assert total == 4


def test_inspect_lists_events(db, capsys):
    rec = crud.create_recurring_event(db, title="Sunday Holy Mass", rrule="FREQ=WEEKLY;BYDAY=SU",
                                      dtstart=date(2024, 1, 1))
    crud.create_event(db, title="Sunday Holy Mass", event_date=date(2024, 1, 7), source_recurring_event_id=rec.id)
    crud.create_event(db, title="Parish Feast", event_date=date(2024, 2, 2))

    inspect_db.main(["--from", "2024-01-01", "--to", "2024-01-31"])
    out = capsys.readouterr().out
    assert "Sunday Holy Mass" in out
    assert "Parish Feast" not in out
    assert "1 row(s)." in out

    inspect_db.main(["--patterns"])
    out = capsys.readouterr().out
    assert "Weekly on Sun" in out


def test_inspect_reports_empty_range(db, capsys):
    inspect_db.main(["--from", "2030-01-01"])
    assert "No events found" in capsys.readouterr().out
