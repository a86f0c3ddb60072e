# scheduler/errors.py
"""
Exceptions raised by the recurrence engine and the event materializer.

All of them derive from SchedulerError (a ValueError), so callers that only
care about "bad input" can catch one type.
"""

from __future__ import annotations

from typing import Optional


class SchedulerError(ValueError):
    """Base class for recurrence / materialization failures."""


class MalformedRuleError(SchedulerError):
    """Rule text (or rule fields) violate the FREQ=...;INTERVAL=... grammar."""


class InvalidDayOfMonthError(SchedulerError):
    """BYMONTHDAY outside 1..31."""

    def __init__(self, day):
        self.day = day
        super().__init__(f"Day of month must be between 1 and 31, got {day!r}")


class UnboundedGenerationError(SchedulerError):
    """Asked to enumerate a never-ending rule without a cap."""


class PatternNotActiveError(SchedulerError):
    """Materialization requested for a paused or cancelled pattern."""

    def __init__(self, recurring_event_id, status):
        self.recurring_event_id = recurring_event_id
        self.status = status
        super().__init__(
            f"Recurring event {recurring_event_id} is {status!r}; only active patterns generate events"
        )


class MaterializationPartialFailure(SchedulerError):
    """
    An event create failed midway through a batch.

    `created` is how many events were persisted before the failure; those rows
    are kept. The underlying exception is available as `cause` (and __cause__).
    """

    def __init__(self, created: int, cause: Optional[BaseException] = None):
        self.created = created
        self.cause = cause
        super().__init__(f"Event generation stopped after {created} event(s): {cause}")
