"""Calendar period helpers for report anchors and roll-up ranges."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta


@dataclass(frozen=True, slots=True)
class Period:
    """Inclusive calendar date range."""

    start: date
    end: date


def iso_week(anchor: date) -> Period:
    """Monday-to-Sunday week containing ``anchor``."""

    start = anchor - timedelta(days=anchor.weekday())
    return Period(start=start, end=start + timedelta(days=6))


def calendar_month(anchor: date) -> Period:
    last_day = calendar.monthrange(anchor.year, anchor.month)[1]
    return Period(start=date(anchor.year, anchor.month, 1), end=date(anchor.year, anchor.month, last_day))


def calendar_year(year: int) -> Period:
    return Period(start=date(year, 1, 1), end=date(year, 12, 31))


def last_completed_week_anchor(today: date) -> date:
    """Most recent Sunday on or before ``today``."""

    return today - timedelta(days=(today.weekday() + 1) % 7)


def previous_month_anchor(today: date) -> date:
    return date(today.year, today.month, 1) - timedelta(days=1)


def clamp_day(year: int, month: int, day: int) -> date:
    """Build a date, clamping ``day`` to the last day of the month."""

    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def add_months(year: int, month: int, months: int) -> tuple[int, int]:
    index = (year * 12 + (month - 1)) + months
    return index // 12, index % 12 + 1


def format_display_date(value: date) -> str:
    """``March 4, 2024`` style date used in titles and messages."""

    return f"{value.strftime('%B')} {value.day}, {value.year}"
