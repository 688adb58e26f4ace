from __future__ import annotations

import threading
from datetime import datetime, timezone

import pytest

from reportdesk.core.clock import FrozenClock
from reportdesk.core.config import Settings
from reportdesk.services.scheduler import DailyAt, MonthlyAt, Scheduler, WeeklyAt, build_default_scheduler

UTC = timezone.utc


def _at(*args: int) -> datetime:
    return datetime(*args, tzinfo=UTC)


def test_daily_rule_fires_strictly_after_moment() -> None:
    rule = DailyAt(18)

    assert rule.next_after(_at(2024, 3, 4, 9, 0)) == _at(2024, 3, 4, 18, 0)
    assert rule.next_after(_at(2024, 3, 4, 18, 0)) == _at(2024, 3, 5, 18, 0)


def test_weekly_rule_uses_sunday_as_day_zero() -> None:
    rule = WeeklyAt(0, 23)

    # Monday 2024-03-04.
    assert rule.next_after(_at(2024, 3, 4, 9, 0)) == _at(2024, 3, 10, 23, 0)
    assert rule.next_after(_at(2024, 3, 10, 22, 59)) == _at(2024, 3, 10, 23, 0)
    assert rule.next_after(_at(2024, 3, 10, 23, 0)) == _at(2024, 3, 17, 23, 0)


def test_monthly_rule_rolls_over_and_clamps() -> None:
    assert MonthlyAt(1, 0, 30).next_after(_at(2024, 3, 4, 9, 0)) == _at(2024, 4, 1, 0, 30)

    end_of_month = MonthlyAt(31, 12)
    assert end_of_month.next_after(_at(2024, 4, 5, 9, 0)) == _at(2024, 4, 30, 12, 0)
    assert end_of_month.next_after(_at(2024, 4, 30, 13, 0)) == _at(2024, 5, 31, 12, 0)
    assert end_of_month.next_after(_at(2024, 12, 31, 13, 0)) == _at(2025, 1, 31, 12, 0)


def test_run_pending_runs_due_jobs_once(clock: FrozenClock) -> None:
    calls: list[str] = []
    scheduler = Scheduler(clock=clock)
    scheduler.add("morning", DailyAt(10), lambda: calls.append("morning"))
    scheduler.add("evening", DailyAt(18), lambda: calls.append("evening"))

    assert scheduler.run_pending() == []

    clock.set(_at(2024, 3, 4, 10, 0))
    assert scheduler.run_pending() == ["morning"]
    assert scheduler.run_pending() == []
    assert scheduler.next_run("morning") == _at(2024, 3, 5, 10, 0)
    assert scheduler.next_run("evening") == _at(2024, 3, 4, 18, 0)
    assert calls == ["morning"]


def test_duplicate_job_name_is_rejected(clock: FrozenClock) -> None:
    scheduler = Scheduler(clock=clock)
    scheduler.add("job", DailyAt(1), lambda: None)

    with pytest.raises(ValueError):
        scheduler.add("job", DailyAt(2), lambda: None)


def test_job_is_skipped_while_previous_run_holds_lock(clock: FrozenClock) -> None:
    calls: list[int] = []
    scheduler = Scheduler(clock=clock)
    entry = scheduler.add("job", DailyAt(10), lambda: calls.append(1))

    entry.run_lock.acquire()
    try:
        assert scheduler.run_job(entry) is False
    finally:
        entry.run_lock.release()

    assert calls == []
    assert scheduler.run_job(entry) is True
    assert calls == [1]


def test_failing_job_does_not_break_the_pass(clock: FrozenClock) -> None:
    calls: list[str] = []

    def explode() -> None:
        raise RuntimeError("boom")

    scheduler = Scheduler(clock=clock)
    scheduler.add("broken", DailyAt(10), explode)
    scheduler.add("healthy", DailyAt(10), lambda: calls.append("healthy"))
    clock.set(_at(2024, 3, 4, 10, 0))

    assert scheduler.run_pending() == ["broken", "healthy"]
    assert calls == ["healthy"]
    assert scheduler.jobs[0].run_lock.locked() is False


def test_background_thread_runs_due_jobs(clock: FrozenClock) -> None:
    fired = threading.Event()
    scheduler = Scheduler(clock=clock, poll_seconds=0.01)
    scheduler.add("job", DailyAt(10), fired.set)
    clock.set(_at(2024, 3, 4, 10, 0))

    scheduler.start()
    try:
        assert scheduler.running is True
        assert fired.wait(timeout=2.0)
    finally:
        scheduler.stop()

    assert scheduler.running is False


class _StubJobs:
    def lock_overdue_reports(self) -> None:
        pass

    def send_daily_reminders(self) -> None:
        pass

    def generate_weekly_reports(self) -> None:
        pass

    def generate_monthly_reports(self) -> None:
        pass


def test_default_schedule_registers_batch_jobs(clock: FrozenClock) -> None:
    settings = Settings(
        scheduler_poll_seconds=5,
        lock_overdue_hour=0,
        daily_reminder_hour=18,
        weekly_rollup_hour=23,
        monthly_rollup_hour=0,
    )

    scheduler = build_default_scheduler(settings, _StubJobs(), clock=clock)

    assert scheduler.poll_seconds == 5
    assert [entry.name for entry in scheduler.jobs] == [
        "lock-overdue",
        "daily-reminders",
        "weekly-rollup",
        "monthly-rollup",
    ]
    assert scheduler.next_run("lock-overdue") == _at(2024, 3, 5, 0, 0)
    assert scheduler.next_run("daily-reminders") == _at(2024, 3, 4, 18, 0)
    assert scheduler.next_run("weekly-rollup") == _at(2024, 3, 10, 23, 0)
    assert scheduler.next_run("monthly-rollup") == _at(2024, 4, 1, 0, 30)
