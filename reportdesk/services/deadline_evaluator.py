"""Next-occurrence computation for deadline recurrence rules.

Pure functions: no database access and no wall clock. Weekday numbering
follows the stored rules, 0 = Sunday through 6 = Saturday.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Protocol

from reportdesk.core.errors import BadRequestError
from reportdesk.core.periods import add_months, clamp_day
from reportdesk.models.entities import DeadlineType

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class DeadlineLike(Protocol):
    type: DeadlineType
    deadline_time: str
    day_of_week: int | None
    day_of_month: int | None


@dataclass(frozen=True, slots=True)
class DeadlineRule:
    type: DeadlineType
    deadline_time: str
    day_of_week: int | None = None
    day_of_month: int | None = None


def parse_deadline_time(value: str) -> time:
    """Parse ``HH:MM`` (24h)."""

    match = _TIME_RE.match(value.strip()) if value else None
    if match is None:
        raise BadRequestError("deadline_time must use 24h HH:MM format.")
    return time(int(match.group(1)), int(match.group(2)))


def sunday_based_weekday(value: datetime) -> int:
    return value.isoweekday() % 7


def _at(value: datetime, at: time) -> datetime:
    return value.replace(hour=at.hour, minute=at.minute, second=0, microsecond=0)


def next_deadline(rule: DeadlineLike, reference: datetime) -> datetime:
    """Return the next instant at which ``rule`` fires, relative to ``reference``.

    An instant equal to ``reference`` counts as not yet passed. Monthly rules
    clamp ``day_of_month`` to the last day of short months.
    """

    at = parse_deadline_time(rule.deadline_time)
    candidate = _at(reference, at)

    if rule.type is DeadlineType.DAILY:
        if candidate < reference:
            candidate += timedelta(days=1)

    elif rule.type is DeadlineType.WEEKLY:
        if rule.day_of_week is None:
            raise BadRequestError("Weekly deadlines require day_of_week.")
        days_until = (rule.day_of_week - sunday_based_weekday(reference) + 7) % 7
        if days_until == 0 and candidate < reference:
            days_until = 7
        candidate += timedelta(days=days_until)

    elif rule.type is DeadlineType.MONTHLY:
        if rule.day_of_month is None:
            raise BadRequestError("Monthly deadlines require day_of_month.")
        day = clamp_day(reference.year, reference.month, rule.day_of_month)
        candidate = _at(reference.replace(year=day.year, month=day.month, day=day.day), at)
        if candidate < reference:
            year, month = add_months(reference.year, reference.month, 1)
            day = clamp_day(year, month, rule.day_of_month)
            candidate = _at(reference.replace(year=day.year, month=day.month, day=day.day), at)

    if candidate < reference:
        candidate += timedelta(days=1)
    return candidate
