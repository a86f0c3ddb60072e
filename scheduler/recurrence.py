# scheduler/recurrence.py
"""
Recurrence rules for recurring church events.

A rule is stored on each RecurringEvent as compact text, e.g.

    FREQ=WEEKLY;INTERVAL=1;BYDAY=SU            (every Sunday)
    FREQ=MONTHLY;INTERVAL=1;BYMONTHDAY=15;COUNT=6

This module only converts between that text and the RecurrenceRule value
object (parse / serialize) and renders a short display label (humanize).
Expanding a rule into dates lives in scheduler/occurrences.py.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Union

from scheduler.errors import InvalidDayOfMonthError, MalformedRuleError, SchedulerError


class Frequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


# Two-letter codes in Python weekday() order: Monday=0 .. Sunday=6
WEEKDAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")
WEEKDAY_LABELS = {
    "MO": "Mon", "TU": "Tue", "WE": "Wed", "TH": "Thu",
    "FR": "Fri", "SA": "Sat", "SU": "Sun",
}

WEEKDAY_NAME_TO_INT = {
    "mon": 0, "monday": 0,
    "tue": 1, "tues": 1, "tuesday": 1,
    "wed": 2, "wednesday": 2,
    "thu": 3, "thur": 3, "thurs": 3, "thursday": 3,
    "fri": 4, "friday": 4,
    "sat": 5, "saturday": 5,
    "sun": 6, "sunday": 6,
}


def weekday_code(value: Union[str, int]) -> str:
    """
    Normalize 'SU', 'Sun', 'sunday' or 6 to the two-letter code 'SU'.
    Raises MalformedRuleError for anything else.
    """
    if isinstance(value, bool):
        raise MalformedRuleError(f"Unknown weekday: {value!r}")
    if isinstance(value, int):
        if 0 <= value <= 6:
            return WEEKDAY_CODES[value]
        raise MalformedRuleError(f"Weekday index must be 0..6, got {value}")
    if isinstance(value, str):
        token = value.strip()
        if token.upper() in WEEKDAY_CODES:
            return token.upper()
        idx = WEEKDAY_NAME_TO_INT.get(token.lower())
        if idx is not None:
            return WEEKDAY_CODES[idx]
    raise MalformedRuleError(f"Unknown weekday: {value!r}")


def weekday_index(code: str) -> int:
    return WEEKDAY_CODES.index(code)


# ------------------------
# Termination modes
# ------------------------

@dataclass(frozen=True)
class Never:
    """The series has no end of its own; generators need a caller cap."""


@dataclass(frozen=True)
class After:
    count: int

    def __post_init__(self):
        if isinstance(self.count, bool) or not isinstance(self.count, int) or self.count < 1:
            raise MalformedRuleError(f"COUNT must be a positive integer, got {self.count!r}")


@dataclass(frozen=True)
class Until:
    date: date  # inclusive

    def __post_init__(self):
        d = self.date
        if isinstance(d, datetime):
            object.__setattr__(self, "date", d.date())
        elif not isinstance(d, date):
            raise MalformedRuleError(f"UNTIL must be a date, got {d!r}")


Termination = Union[Never, After, Until]


# ------------------------
# Rule value object
# ------------------------

@dataclass(frozen=True)
class RecurrenceRule:
    frequency: Frequency
    interval: int = 1
    by_weekday: FrozenSet[str] = frozenset()
    by_month_day: Optional[int] = None
    termination: Termination = field(default_factory=Never)

    def __post_init__(self):
        try:
            freq = Frequency(str(getattr(self.frequency, "value", self.frequency)).upper())
        except ValueError:
            raise MalformedRuleError(f"Unknown FREQ value: {self.frequency!r}") from None
        object.__setattr__(self, "frequency", freq)

        if isinstance(self.interval, bool) or not isinstance(self.interval, int) or self.interval < 1:
            raise MalformedRuleError(f"INTERVAL must be a positive integer, got {self.interval!r}")

        codes = frozenset(weekday_code(w) for w in (self.by_weekday or ()))
        object.__setattr__(self, "by_weekday", codes)

        md = self.by_month_day
        if md is not None:
            if isinstance(md, bool) or not isinstance(md, int) or not (1 <= md <= 31):
                raise InvalidDayOfMonthError(md)

        if not isinstance(self.termination, (Never, After, Until)):
            raise MalformedRuleError(f"Unsupported termination: {self.termination!r}")

    @property
    def weekday_indexes(self):
        """Selected weekdays as sorted Python weekday() ints."""
        return sorted(weekday_index(c) for c in self.by_weekday)

    @property
    def count(self) -> Optional[int]:
        return self.termination.count if isinstance(self.termination, After) else None

    @property
    def until(self) -> Optional[date]:
        return self.termination.date if isinstance(self.termination, Until) else None

    @property
    def is_unbounded(self) -> bool:
        return isinstance(self.termination, Never)

    def __str__(self) -> str:
        return serialize(self)


# ------------------------
# Text codec
# ------------------------

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T ].*)?$")
_ICAL_DATE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})(?:T\d{6}Z?)?$")


def _parse_int(key: str, value: str) -> int:
    if not re.fullmatch(r"[+-]?\d+", value or ""):
        raise MalformedRuleError(f"{key} must be an integer, got {value!r}")
    return int(value)


def _parse_until(value: str) -> date:
    """Accepts 2024-03-31, 2024-03-31T00:00:00, 20240331 and 20240331T000000Z."""
    v = (value or "").strip().upper()
    m = _ISO_DATE_RE.match(v) or _ICAL_DATE_RE.match(v)
    if not m:
        raise MalformedRuleError(f"UNTIL must be a date, got {value!r}")
    try:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError as e:
        raise MalformedRuleError(f"UNTIL is not a valid date: {value!r}") from e


def _rule_body(text: str) -> str:
    """
    Strip the optional 'RRULE:' prefix and any DTSTART line (rrule.js writes
    'DTSTART:20240101T090000Z\\nRRULE:FREQ=...').
    """
    bodies = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.upper().startswith("DTSTART"):
            continue
        if line.upper().startswith("RRULE:"):
            line = line[len("RRULE:"):]
        bodies.append(line)
    if not bodies:
        raise MalformedRuleError("Recurrence rule is empty")
    if len(bodies) > 1:
        raise MalformedRuleError("Only one recurrence rule per series is supported")
    return bodies[0]


def parse(text: str) -> RecurrenceRule:
    """
    Decode 'FREQ=...;INTERVAL=...;BYDAY=...;BYMONTHDAY=...;COUNT=...|UNTIL=...'.

    Unknown keys are ignored. Raises MalformedRuleError when FREQ is missing or
    unknown, when COUNT and UNTIL are both present, or when a value does not
    fit its key. Raises InvalidDayOfMonthError for BYMONTHDAY outside 1..31.
    """
    if not isinstance(text, str) or not text.strip():
        raise MalformedRuleError("Recurrence rule is empty")

    fields = {}
    for part in _rule_body(text).split(";"):
        part = part.strip()
        if not part:
            continue
        key, sep, value = part.partition("=")
        if not sep:
            raise MalformedRuleError(f"Expected KEY=VALUE, got {part!r}")
        fields[key.strip().upper()] = value.strip()

    if "FREQ" not in fields:
        raise MalformedRuleError("FREQ is required")
    if "COUNT" in fields and "UNTIL" in fields:
        raise MalformedRuleError("COUNT and UNTIL cannot both be set")

    interval = _parse_int("INTERVAL", fields["INTERVAL"]) if "INTERVAL" in fields else 1

    by_weekday = frozenset()
    if fields.get("BYDAY"):
        codes = [c.strip().upper() for c in fields["BYDAY"].split(",") if c.strip()]
        unknown = [c for c in codes if c not in WEEKDAY_CODES]
        if unknown:
            raise MalformedRuleError(f"Unknown BYDAY value(s): {', '.join(unknown)}")
        by_weekday = frozenset(codes)

    by_month_day = None
    if fields.get("BYMONTHDAY"):
        by_month_day = _parse_int("BYMONTHDAY", fields["BYMONTHDAY"])

    termination: Termination = Never()
    if "COUNT" in fields:
        termination = After(_parse_int("COUNT", fields["COUNT"]))
    elif "UNTIL" in fields:
        termination = Until(_parse_until(fields["UNTIL"]))

    return RecurrenceRule(
        frequency=fields["FREQ"].upper(),
        interval=interval,
        by_weekday=by_weekday,
        by_month_day=by_month_day,
        termination=termination,
    )


def serialize(rule: RecurrenceRule) -> str:
    parts = [f"FREQ={rule.frequency.value}", f"INTERVAL={rule.interval or 1}"]
    if rule.by_weekday:
        parts.append("BYDAY=" + ",".join(_ordered_codes(rule.by_weekday)))
    if rule.by_month_day is not None:
        parts.append(f"BYMONTHDAY={rule.by_month_day}")
    if isinstance(rule.termination, After):
        parts.append(f"COUNT={rule.termination.count}")
    elif isinstance(rule.termination, Until):
        parts.append(f"UNTIL={rule.termination.date.isoformat()}")
    return ";".join(parts)


def _ordered_codes(codes: Iterable[str]):
    return sorted(codes, key=weekday_index)


# ------------------------
# Display
# ------------------------

_UNITS = {
    Frequency.DAILY: ("Daily", "days"),
    Frequency.WEEKLY: ("Weekly", "weeks"),
    Frequency.MONTHLY: ("Monthly", "months"),
    Frequency.YEARLY: ("Yearly", "years"),
}


def humanize(rule: Union[RecurrenceRule, str]) -> str:
    """
    'Weekly on Sun', 'Every 2 weeks on Mon, Thu', 'Every 3 days', ...
    Text that does not parse is returned as-is (list views show it raw).
    """
    if isinstance(rule, str):
        try:
            rule = parse(rule)
        except SchedulerError:
            return rule

    single, plural = _UNITS[rule.frequency]
    text = single if rule.interval == 1 else f"Every {rule.interval} {plural}"
    if rule.frequency is Frequency.WEEKLY and rule.by_weekday:
        text += " on " + ", ".join(WEEKDAY_LABELS[c] for c in _ordered_codes(rule.by_weekday))
    return text
