# scheduler/__init__.py
"""Recurring-event scheduling: rule codec, occurrence generator, builder, materializer."""

from scheduler.errors import (
    InvalidDayOfMonthError,
    MalformedRuleError,
    MaterializationPartialFailure,
    PatternNotActiveError,
    SchedulerError,
    UnboundedGenerationError,
)
from scheduler.recurrence import (
    After,
    Frequency,
    Never,
    RecurrenceRule,
    Until,
    humanize,
    parse,
    serialize,
)
from scheduler.occurrences import generate, occurrences_between

__all__ = [
    "After",
    "Frequency",
    "InvalidDayOfMonthError",
    "MalformedRuleError",
    "MaterializationPartialFailure",
    "Never",
    "PatternNotActiveError",
    "RecurrenceRule",
    "SchedulerError",
    "UnboundedGenerationError",
    "Until",
    "generate",
    "humanize",
    "occurrences_between",
    "parse",
    "serialize",
]
