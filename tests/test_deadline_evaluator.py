from __future__ import annotations

from datetime import datetime, time, timezone
from zoneinfo import ZoneInfo

import pytest

from reportdesk.core.errors import BadRequestError
from reportdesk.models.entities import DeadlineType
from reportdesk.services.deadline_evaluator import (
    DeadlineRule,
    next_deadline,
    parse_deadline_time,
    sunday_based_weekday,
)

UTC = timezone.utc


def _at(*args: int) -> datetime:
    return datetime(*args, tzinfo=UTC)


def test_parse_deadline_time_accepts_24h_values() -> None:
    assert parse_deadline_time("00:00") == time(0, 0)
    assert parse_deadline_time("23:59") == time(23, 59)


@pytest.mark.parametrize("value", ["24:00", "7:30", "12:60", "noon", ""])
def test_parse_deadline_time_rejects_malformed_values(value: str) -> None:
    with pytest.raises(BadRequestError):
        parse_deadline_time(value)


def test_weekday_numbering_starts_on_sunday() -> None:
    assert sunday_based_weekday(_at(2024, 3, 3)) == 0
    assert sunday_based_weekday(_at(2024, 3, 6)) == 3
    assert sunday_based_weekday(_at(2024, 3, 9)) == 6


def test_daily_deadline_today_or_tomorrow() -> None:
    rule = DeadlineRule(type=DeadlineType.DAILY, deadline_time="17:00")

    assert next_deadline(rule, _at(2024, 3, 4, 9, 0)) == _at(2024, 3, 4, 17, 0)
    assert next_deadline(rule, _at(2024, 3, 4, 17, 0)) == _at(2024, 3, 4, 17, 0)
    assert next_deadline(rule, _at(2024, 3, 4, 17, 1)) == _at(2024, 3, 5, 17, 0)


def test_weekly_wednesday_same_day_before_deadline() -> None:
    rule = DeadlineRule(type=DeadlineType.WEEKLY, deadline_time="18:00", day_of_week=3)

    # 2024-03-06 is a Wednesday.
    assert next_deadline(rule, _at(2024, 3, 6, 10, 0)) == _at(2024, 3, 6, 18, 0)


def test_weekly_wednesday_after_deadline_rolls_a_full_week() -> None:
    rule = DeadlineRule(type=DeadlineType.WEEKLY, deadline_time="18:00", day_of_week=3)

    assert next_deadline(rule, _at(2024, 3, 6, 19, 0)) == _at(2024, 3, 13, 18, 0)


def test_weekly_deadline_from_other_weekdays() -> None:
    rule = DeadlineRule(type=DeadlineType.WEEKLY, deadline_time="09:00", day_of_week=1)

    assert next_deadline(rule, _at(2024, 3, 6, 8, 0)) == _at(2024, 3, 11, 9, 0)
    assert next_deadline(rule, _at(2024, 3, 10, 23, 0)) == _at(2024, 3, 11, 9, 0)


def test_monthly_deadline_in_current_or_next_month() -> None:
    rule = DeadlineRule(type=DeadlineType.MONTHLY, deadline_time="12:00", day_of_month=15)

    assert next_deadline(rule, _at(2024, 3, 4, 9, 0)) == _at(2024, 3, 15, 12, 0)
    assert next_deadline(rule, _at(2024, 3, 15, 13, 0)) == _at(2024, 4, 15, 12, 0)
    assert next_deadline(rule, _at(2024, 12, 20, 0, 0)) == _at(2025, 1, 15, 12, 0)


def test_monthly_deadline_clamps_to_short_months() -> None:
    rule = DeadlineRule(type=DeadlineType.MONTHLY, deadline_time="18:00", day_of_month=31)

    assert next_deadline(rule, _at(2024, 2, 10, 9, 0)) == _at(2024, 2, 29, 18, 0)
    assert next_deadline(rule, _at(2023, 2, 28, 19, 0)) == _at(2023, 3, 31, 18, 0)
    assert next_deadline(rule, _at(2024, 3, 31, 19, 0)) == _at(2024, 4, 30, 18, 0)


def test_deadline_is_evaluated_in_reference_timezone() -> None:
    warsaw = ZoneInfo("Europe/Warsaw")
    rule = DeadlineRule(type=DeadlineType.DAILY, deadline_time="17:00")

    result = next_deadline(rule, datetime(2024, 3, 4, 9, 0, tzinfo=warsaw))

    assert result == datetime(2024, 3, 4, 17, 0, tzinfo=warsaw)
    assert result.astimezone(UTC) == _at(2024, 3, 4, 16, 0)


def test_rule_missing_recurrence_day_is_rejected() -> None:
    with pytest.raises(BadRequestError):
        next_deadline(DeadlineRule(type=DeadlineType.WEEKLY, deadline_time="18:00"), _at(2024, 3, 6))
    with pytest.raises(BadRequestError):
        next_deadline(DeadlineRule(type=DeadlineType.MONTHLY, deadline_time="18:00"), _at(2024, 3, 6))
