# scheduler/builder.py
"""
Interactive recurrence composer behind the "Recurrence Pattern" form.

The form calls one setter per user interaction; every setter validates the
new value, rebuilds the rule and refreshes a short preview before returning.
A rejected value raises and leaves the builder exactly as it was.

    b = RecurrenceBuilder(start_date=date(2024, 1, 1))
    b.toggle_weekday("SU")
    b.current_rule_text()   # 'FREQ=WEEKLY;INTERVAL=1;BYDAY=SU'
    b.preview               # next 5 Sundays
"""

from __future__ import annotations

import logging
from calendar import monthrange
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Callable, FrozenSet, List, Optional, Union

import config
from scheduler.errors import MalformedRuleError, SchedulerError
from scheduler.occurrences import generate
from scheduler.recurrence import (
    After,
    Frequency,
    Never,
    RecurrenceRule,
    Termination,
    Until,
    humanize,
    parse,
    serialize,
    weekday_code,
)

logger = logging.getLogger(__name__)

OnChange = Callable[[str, Union[date, datetime]], None]


def _months_later(d: date, months: int) -> date:
    total = d.year * 12 + (d.month - 1) + months
    year, month = total // 12, total % 12 + 1
    return date(year, month, min(d.day, monthrange(year, month)[1]))


@dataclass(frozen=True)
class _State:
    frequency: Frequency = Frequency.WEEKLY
    interval: int = 1
    weekdays: FrozenSet[str] = frozenset()
    month_day: Optional[int] = 1
    termination: Termination = field(default_factory=Never)
    start: Union[date, datetime] = field(default_factory=date.today)
    # values behind the "After" and "On" radios, kept while another option is selected
    count: int = 10
    until: Optional[date] = None


def _remember(state: _State) -> _State:
    t = state.termination
    if isinstance(t, After):
        return replace(state, count=t.count)
    if isinstance(t, Until):
        return replace(state, until=t.date)
    return state


class RecurrenceBuilder:
    """Holds the form's recurrence selections and the rule derived from them."""

    def __init__(
        self,
        start_date: Union[date, datetime, None] = None,
        *,
        preview_count: Optional[int] = None,
        on_change: Optional[OnChange] = None,
    ):
        self.preview_count = preview_count if preview_count is not None else config.PREVIEW_COUNT
        self.on_change = on_change
        self.warnings: List[str] = []
        self._state = _State() if start_date is None else _State(start=start_date)
        self._rule: RecurrenceRule
        self._preview: list = []
        self._commit(self._state)

    # ------------------------
    # Read side
    # ------------------------

    @property
    def frequency(self) -> Frequency:
        return self._state.frequency

    @property
    def interval(self) -> int:
        return self._state.interval

    @property
    def weekdays(self) -> FrozenSet[str]:
        return self._state.weekdays

    @property
    def month_day(self) -> Optional[int]:
        return self._state.month_day

    @property
    def termination(self) -> Termination:
        return self._state.termination

    @property
    def start_date(self) -> Union[date, datetime]:
        return self._state.start

    @property
    def preview(self) -> list:
        return list(self._preview)

    @property
    def summary(self) -> str:
        return humanize(self._rule)

    def current_rule(self) -> RecurrenceRule:
        return self._rule

    def current_rule_text(self) -> str:
        return serialize(self._rule)

    # ------------------------
    # Setters
    # ------------------------

    def set_frequency(self, frequency: Union[Frequency, str]) -> None:
        try:
            freq = Frequency(str(getattr(frequency, "value", frequency)).upper())
        except ValueError:
            raise MalformedRuleError(f"Unknown frequency: {frequency!r}") from None
        self._commit(replace(self._state, frequency=freq))

    def set_interval(self, interval: int) -> None:
        self._commit(replace(self._state, interval=interval))

    def toggle_weekday(self, day: Union[str, int]) -> None:
        code = weekday_code(day)
        current = self._state.weekdays
        weekdays = current - {code} if code in current else current | {code}
        self._commit(replace(self._state, weekdays=frozenset(weekdays)))

    def set_month_day(self, day: int) -> None:
        self._commit(replace(self._state, month_day=day))

    def set_termination(self, termination: Termination) -> None:
        self._commit(_remember(replace(self._state, termination=termination)))

    def set_start_date(self, start: Union[date, datetime]) -> None:
        if not isinstance(start, date):
            raise TypeError(f"start date must be a date or datetime, got {type(start).__name__}")
        self._commit(replace(self._state, start=start))

    # Convenience for the "Ends" radio group
    def end_never(self) -> None:
        self.set_termination(Never())

    def end_after(self, count: Optional[int] = None) -> None:
        self.set_termination(After(count if count is not None else self._state.count))

    def end_on(self, until: Optional[date] = None) -> None:
        if until is None:
            until = self._state.until
        if until is None:
            start = self._state.start
            until = _months_later(start.date() if isinstance(start, datetime) else start, 3)
        self.set_termination(Until(until))

    # ------------------------
    # Editing an existing pattern
    # ------------------------

    def load_from_existing(self, rule_text: str, dtstart: Union[date, datetime, None] = None) -> bool:
        """
        Populate every field from a stored rule.

        A rule that does not parse is replaced by the defaults (weekly, every
        week, no weekdays, never ending); the problem is recorded in
        `warnings` and False is returned so the form can show it.
        """
        start = dtstart if dtstart is not None else self._state.start
        if not isinstance(start, date):
            raise TypeError(f"dtstart must be a date or datetime, got {type(start).__name__}")

        self.warnings = []
        try:
            rule = parse(rule_text)
        except SchedulerError as e:
            msg = f"Could not read the saved recurrence rule ({e}); defaults were loaded instead."
            logger.warning("Falling back to default recurrence for %r: %s", rule_text, e)
            self.warnings.append(msg)
            self._commit(_State(start=start))
            return False

        # a monthly rule without BYMONTHDAY repeats on dtstart's day, so it stays unset
        month_day = rule.by_month_day
        if month_day is None and rule.frequency is not Frequency.MONTHLY:
            month_day = 1

        self._commit(_remember(_State(
            frequency=rule.frequency,
            interval=rule.interval,
            weekdays=rule.by_weekday,
            month_day=month_day,
            termination=rule.termination,
            start=start,
        )))
        return True

    # ------------------------
    # Internals
    # ------------------------

    def _build_rule(self, state: _State) -> RecurrenceRule:
        # weekday and month-day selections only travel with the frequency that uses them
        return RecurrenceRule(
            frequency=state.frequency,
            interval=state.interval,
            by_weekday=state.weekdays if state.frequency is Frequency.WEEKLY else frozenset(),
            by_month_day=state.month_day if state.frequency is Frequency.MONTHLY else None,
            termination=state.termination,
        )

    def _commit(self, state: _State) -> None:
        # Validate the month day even while it is hidden (non-monthly frequency).
        if state.month_day is not None:
            RecurrenceRule(Frequency.MONTHLY, by_month_day=state.month_day)
        rule = self._build_rule(state)
        preview = generate(rule, state.start, limit=self.preview_count).take(self.preview_count)

        self._state, self._rule, self._preview = state, rule, preview
        if self.on_change is not None:
            self.on_change(serialize(rule), state.start)
