"""
Business-day arithmetic for regulatory deadlines.

Authorities count processing time in business days. A business day is Monday
through Friday; public holidays are not modelled, so projections for periods
spanning a holiday come out one day early per holiday.

Both endpoints are counted by :func:`business_days_between` when they are
business days:

+-------------------+-------------------+--------+
| start             | end               | result |
+===================+===================+========+
| Mon 2024-01-01    | Fri 2024-01-05    | 5      |
| Sat 2024-01-06    | Sun 2024-01-07    | 0      |
| Fri 2024-01-05    | Mon 2024-01-08    | 2      |
+-------------------+-------------------+--------+

Everything here is a pure function of its arguments. Callers pass ``today``
explicitly; nothing reads the wall clock.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from enum import IntEnum

from archflow.exceptions import ValidationError

Weekdays = IntEnum("Weekdays", "Mon Tue Wed Thu Fri Sat Sun", start=1)

WEEKEND = frozenset({Weekdays.Sat, Weekdays.Sun})


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def is_business_day(day: date | datetime) -> bool:
    return _as_date(day).isoweekday() not in WEEKEND


def business_days_between(start: date | datetime, end: date | datetime) -> int:
    """Count business days in the closed interval ``[start, end]``."""
    start, end = _as_date(start), _as_date(end)
    if end < start:
        return 0
    span = (end - start).days + 1
    return sum(1 for offset in range(span) if is_business_day(start + timedelta(offset)))


def project_completion_date(start: date | datetime, business_days: int) -> date:
    """Get the date on which ``business_days`` business days after ``start`` end.

    The start date itself is never counted; weekends are stepped over.
    """
    if business_days < 0:
        raise ValidationError(
            "Business day count must not be negative",
            details=[{"field": "business_days", "message": "must be >= 0"}],
        )
    current = _as_date(start)
    elapsed = 0
    while elapsed < business_days:
        current += timedelta(days=1)
        if is_business_day(current):
            elapsed += 1
    return current


def is_overdue(submission, today: date | datetime) -> bool:
    """True while a live submission is past its expected completion date."""
    if submission.status.is_terminal:
        return False
    if submission.expected_completion_date is None:
        return False
    return _as_date(today) > submission.expected_completion_date
