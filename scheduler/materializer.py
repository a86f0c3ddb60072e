# scheduler/materializer.py
"""
Turn a recurring pattern into concrete dated Event rows ("Generate Events").

The materializer never edits or deletes anything. It only creates the events
that are missing for a pattern, where "missing" means no Event with the
pattern's id as source_recurring_event_id exists on that date. Events created
by hand (source_recurring_event_id NULL) are never read or touched, so a
manual event on the same day as an occurrence is left alone.

Storage is a collaborator with two capabilities (see crud.DatabaseEventStore):

    list_events_by_recurring_id(recurring_event_id) -> iterable of events
    create_event(**fields) -> event

Callers must not run materialize() concurrently for the same pattern; the
read-then-create sequence is not isolated.
"""

from __future__ import annotations

import logging
from calendar import monthrange
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Union

import config
from scheduler.errors import MalformedRuleError, MaterializationPartialFailure, PatternNotActiveError
from scheduler.occurrences import generate
from scheduler.recurrence import parse

logger = logging.getLogger(__name__)

ACTIVE = "active"

# Fields copied from the pattern onto each generated event
COPIED_FIELDS = ("title", "description", "location", "event_time", "featured_image_url")


class EventStore(Protocol):
    def list_events_by_recurring_id(self, recurring_event_id: int) -> Iterable[Any]: ...

    def create_event(self, **fields) -> Any: ...


def _as_day(value: Union[date, datetime, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00")).date()
        except ValueError:
            pass
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            raise MalformedRuleError(f"dtstart is not a date: {value!r}") from None
    raise MalformedRuleError(f"dtstart is not a date: {value!r}")


def _status(value) -> str:
    return str(getattr(value, "value", value) or "").strip().lower()


def default_horizon(today: date, months: Optional[int] = None) -> date:
    """today + N months (day clamped to the end of the target month)."""
    months = config.DEFAULT_HORIZON_MONTHS if months is None else months
    total = today.year * 12 + (today.month - 1) + months
    year, month = total // 12, total % 12 + 1
    return date(year, month, min(today.day, monthrange(year, month)[1]))


class EventMaterializer:
    def __init__(
        self,
        store: EventStore,
        *,
        horizon_months: Optional[int] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.store = store
        self.horizon_months = horizon_months
        self._today = today or date.today

    def resolve_horizon(self, horizon: Optional[date] = None) -> date:
        if horizon is None:
            return default_horizon(self._today(), self.horizon_months)
        return _as_day(horizon)

    def pending_dates(self, recurring_event, horizon: Optional[date] = None) -> List[date]:
        """
        Occurrence dates from dtstart through min(horizon, the rule's own end)
        that have no generated Event yet. Raises MalformedRuleError for a bad
        rule. Pure read: nothing is created.
        """
        rule = parse(recurring_event.rrule)
        start = _as_day(recurring_event.dtstart)
        cutoff = self.resolve_horizon(horizon)

        candidates = list(generate(rule, start, limit=cutoff))
        existing = {
            _as_day(e.event_date)
            for e in self.store.list_events_by_recurring_id(recurring_event.id)
        }
        pending = [d for d in candidates if d not in existing]
        logger.debug(
            "Recurring event %s: %d candidate(s) through %s, %d already generated",
            recurring_event.id, len(candidates), cutoff.isoformat(), len(candidates) - len(pending),
        )
        return pending

    def event_fields(self, recurring_event, on: date) -> Dict[str, Any]:
        fields = {name: getattr(recurring_event, name, None) for name in COPIED_FIELDS}
        fields["event_date"] = on
        fields["source_recurring_event_id"] = recurring_event.id
        return fields

    def materialize(self, recurring_event, horizon: Optional[date] = None) -> int:
        """
        Create the missing events for `recurring_event` up to `horizon` and
        return how many were created (0 when everything already exists).

        Raises PatternNotActiveError unless the pattern is active,
        MalformedRuleError (before creating anything) for a bad rule, and
        MaterializationPartialFailure when a create fails; events created
        before the failure are kept and counted in the exception.
        """
        status = _status(recurring_event.status)
        if status != ACTIVE:
            raise PatternNotActiveError(recurring_event.id, status)

        pending = self.pending_dates(recurring_event, horizon)

        created = 0
        for on in pending:
            try:
                self.store.create_event(**self.event_fields(recurring_event, on))
            except Exception as e:
                logger.error(
                    "Recurring event %s: creating event on %s failed after %d created: %s",
                    recurring_event.id, on.isoformat(), created, e,
                )
                raise MaterializationPartialFailure(created, e) from e
            created += 1

        logger.info("Recurring event %s: generated %d event(s)", recurring_event.id, created)
        return created
