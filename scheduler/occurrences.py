# scheduler/occurrences.py
"""
Expand a RecurrenceRule into concrete occurrence dates.

    seq = generate(parse("FREQ=WEEKLY;BYDAY=SU"), date(2024, 1, 1), limit=3)
    list(seq)  # [2024-01-07, 2024-01-14, 2024-01-21]

The result is lazy and restartable: every iteration starts again from dtstart.
If dtstart is a datetime, each occurrence is a datetime with the same time of
day (and tzinfo); otherwise occurrences are plain dates.
"""

from __future__ import annotations

from calendar import monthrange
from datetime import date, datetime, timedelta
from typing import Iterator, List, Optional, Union

from scheduler.errors import UnboundedGenerationError
from scheduler.recurrence import Frequency, RecurrenceRule, parse

Limit = Union[int, date, None]

# The Gregorian calendar repeats every 400 years (4800 months); a pattern that
# misses that many consecutive periods will never produce another date.
_MAX_EMPTY_MONTH_PERIODS = 4800
_MAX_EMPTY_YEAR_PERIODS = 400


def _as_day(d: Union[date, datetime]) -> date:
    return d.date() if isinstance(d, datetime) else d


def _shift_month(year: int, month: int, months: int):
    total = year * 12 + (month - 1) + months
    return total // 12, total % 12 + 1


# ------------------------
# Per-frequency candidates (unbounded, ascending, all >= start)
# ------------------------

def _daily(start: date, interval: int) -> Iterator[date]:
    step = timedelta(days=interval)
    d = start
    while True:
        yield d
        try:
            d += step
        except OverflowError:
            return


def _weekly(start: date, interval: int, weekdays: List[int]) -> Iterator[date]:
    if not weekdays:
        # keep dtstart's weekday
        yield from _daily(start, 7 * interval)
        return

    week = start - timedelta(days=start.weekday())  # Monday of dtstart's week
    step = timedelta(weeks=interval)
    while True:
        for wd in weekdays:
            try:
                d = week + timedelta(days=wd)
            except OverflowError:
                return
            if d >= start:
                yield d
        try:
            week += step
        except OverflowError:
            return


def _monthly(start: date, interval: int, month_day: Optional[int]) -> Iterator[date]:
    day = month_day or start.day
    misses = 0
    k = 0
    while misses < _MAX_EMPTY_MONTH_PERIODS:
        year, month = _shift_month(start.year, start.month, k * interval)
        if year > date.max.year:
            return
        k += 1
        # months without the target day are skipped, not clamped
        if day > monthrange(year, month)[1]:
            misses += 1
            continue
        misses = 0
        d = date(year, month, day)
        if d >= start:
            yield d


def _yearly(start: date, interval: int) -> Iterator[date]:
    misses = 0
    k = 0
    while misses < _MAX_EMPTY_YEAR_PERIODS:
        year = start.year + k * interval
        if year > date.max.year:
            return
        k += 1
        try:
            d = date(year, start.month, start.day)
        except ValueError:
            # Feb 29 in a non-leap year
            misses += 1
            continue
        misses = 0
        yield d


def _candidates(rule: RecurrenceRule, start: date) -> Iterator[date]:
    if rule.frequency is Frequency.DAILY:
        return _daily(start, rule.interval)
    if rule.frequency is Frequency.WEEKLY:
        return _weekly(start, rule.interval, rule.weekday_indexes)
    if rule.frequency is Frequency.MONTHLY:
        return _monthly(start, rule.interval, rule.by_month_day)
    return _yearly(start, rule.interval)


# ------------------------
# Public API
# ------------------------

class OccurrenceSequence:
    """
    Iterable of occurrences bounded by the rule's own COUNT/UNTIL and by the
    caller's limit (a count or an inclusive end date), whichever binds first.
    """

    def __init__(self, rule: RecurrenceRule, dtstart: Union[date, datetime], limit: Limit = None):
        if not isinstance(dtstart, date):
            raise TypeError(f"dtstart must be a date or datetime, got {type(dtstart).__name__}")

        cap_count: Optional[int] = None
        cap_date: Optional[date] = None
        if isinstance(limit, bool):
            raise TypeError("limit must be an int, a date or None")
        if isinstance(limit, int):
            if limit < 0:
                raise ValueError(f"limit must not be negative, got {limit}")
            cap_count = limit
        elif isinstance(limit, date):
            cap_date = _as_day(limit)
        elif limit is not None:
            raise TypeError("limit must be an int, a date or None")

        if rule.is_unbounded and limit is None:
            raise UnboundedGenerationError(
                f"{rule} never ends on its own; pass a count or an end date as limit"
            )

        self.rule = rule
        self.dtstart = dtstart
        self.limit = limit

        counts = [c for c in (rule.count, cap_count) if c is not None]
        self._max_count = min(counts) if counts else None
        ends = [d for d in (rule.until, cap_date) if d is not None]
        self._last_day = min(ends) if ends else None

    def _restore(self, d: date):
        if isinstance(self.dtstart, datetime):
            return datetime.combine(d, self.dtstart.timetz())
        return d

    def __iter__(self):
        if self._max_count == 0:
            return
        emitted = 0
        for d in _candidates(self.rule, _as_day(self.dtstart)):
            if self._last_day is not None and d > self._last_day:
                return
            yield self._restore(d)
            emitted += 1
            if self._max_count is not None and emitted >= self._max_count:
                return

    def take(self, n: int) -> list:
        """First n occurrences (fewer if the series ends sooner)."""
        out = []
        if n <= 0:
            return out
        for occ in self:
            out.append(occ)
            if len(out) >= n:
                break
        return out

    def __repr__(self) -> str:  # pragma: no cover
        return f"<OccurrenceSequence rule={self.rule} dtstart={self.dtstart!r} limit={self.limit!r}>"


def generate(
    rule: Union[RecurrenceRule, str],
    dtstart: Union[date, datetime],
    limit: Limit = None,
) -> OccurrenceSequence:
    """
    Occurrences of `rule` from `dtstart` onward.

    `limit` is a count or an inclusive end date. It is mandatory when the rule
    has no COUNT/UNTIL of its own (UnboundedGenerationError otherwise).
    """
    if isinstance(rule, str):
        rule = parse(rule)
    return OccurrenceSequence(rule, dtstart, limit)


def occurrences_between(
    rule: Union[RecurrenceRule, str],
    dtstart: Union[date, datetime],
    start: date,
    end: date,
) -> list:
    """Occurrences whose calendar date falls within [start, end] (inclusive)."""
    start, end = _as_day(start), _as_day(end)
    if end < start:
        start, end = end, start
    return [occ for occ in generate(rule, dtstart, limit=end) if _as_day(occ) >= start]
