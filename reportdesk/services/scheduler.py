"""In-process timer that fires batch jobs on daily, weekly and monthly rules.

``run_pending`` does one evaluation pass against the injected clock; the
background thread started by ``start`` simply calls it every poll interval.
A job whose previous run is still executing is skipped, not queued.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Protocol

from reportdesk.core.clock import Clock
from reportdesk.core.config import Settings
from reportdesk.core.periods import add_months, clamp_day

logger = logging.getLogger(__name__)


class ScheduleRule(Protocol):
    def next_after(self, moment: datetime) -> datetime:
        """First fire instant strictly after ``moment``."""


def _at_time(moment: datetime, hour: int, minute: int) -> datetime:
    return moment.replace(hour=hour, minute=minute, second=0, microsecond=0)


@dataclass(frozen=True, slots=True)
class DailyAt:
    hour: int
    minute: int = 0

    def next_after(self, moment: datetime) -> datetime:
        candidate = _at_time(moment, self.hour, self.minute)
        if candidate <= moment:
            candidate += timedelta(days=1)
        return candidate


@dataclass(frozen=True, slots=True)
class WeeklyAt:
    """Fires on ``weekday`` (0 = Sunday) at ``hour:minute``."""

    weekday: int
    hour: int
    minute: int = 0

    def next_after(self, moment: datetime) -> datetime:
        current = moment.isoweekday() % 7
        candidate = _at_time(moment, self.hour, self.minute) + timedelta(days=(self.weekday - current) % 7)
        if candidate <= moment:
            candidate += timedelta(days=7)
        return candidate


@dataclass(frozen=True, slots=True)
class MonthlyAt:
    day: int
    hour: int
    minute: int = 0

    def _in_month(self, moment: datetime, year: int, month: int) -> datetime:
        target = clamp_day(year, month, self.day)
        return _at_time(moment.replace(year=target.year, month=target.month, day=target.day), self.hour, self.minute)

    def next_after(self, moment: datetime) -> datetime:
        candidate = self._in_month(moment, moment.year, moment.month)
        if candidate <= moment:
            year, month = add_months(moment.year, moment.month, 1)
            candidate = self._in_month(moment, year, month)
        return candidate


@dataclass(slots=True)
class ScheduledJob:
    name: str
    rule: ScheduleRule
    job: Callable[[], object]
    next_run: datetime
    run_lock: threading.Lock = field(default_factory=threading.Lock)


class Scheduler:
    def __init__(self, *, clock: Clock | None = None, poll_seconds: float = 30.0) -> None:
        self.clock = clock or Clock()
        self.poll_seconds = poll_seconds
        self._jobs: dict[str, ScheduledJob] = {}
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def jobs(self) -> list[ScheduledJob]:
        return list(self._jobs.values())

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def add(self, name: str, rule: ScheduleRule, job: Callable[[], object]) -> ScheduledJob:
        if name in self._jobs:
            raise ValueError(f"Job '{name}' is already registered.")
        entry = ScheduledJob(name=name, rule=rule, job=job, next_run=rule.next_after(self.clock.now()))
        self._jobs[name] = entry
        return entry

    def next_run(self, name: str) -> datetime:
        return self._jobs[name].next_run

    def run_job(self, entry: ScheduledJob) -> bool:
        """Run one job under its run lock; False when a previous run is still executing."""

        if not entry.run_lock.acquire(blocking=False):
            logger.warning("Skipping job %s: previous run still in progress", entry.name)
            return False
        try:
            logger.info("Running scheduled job %s", entry.name)
            entry.job()
        except Exception:
            logger.exception("Scheduled job %s raised", entry.name)
        finally:
            entry.run_lock.release()
        return True

    def run_pending(self) -> list[str]:
        """Run every due job once and reschedule it; returns the names that ran."""

        now = self.clock.now()
        ran: list[str] = []
        for entry in self.jobs:
            if entry.next_run > now:
                continue
            entry.next_run = entry.rule.next_after(now)
            if self.run_job(entry):
                ran.append(entry.name)
        return ran

    def _loop(self) -> None:
        while not self._stop.wait(self.poll_seconds):
            self.run_pending()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="reportdesk-scheduler", daemon=True)
        self._thread.start()
        logger.info("Scheduler started with %d jobs", len(self._jobs))

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Scheduler stopped")


def build_default_scheduler(settings: Settings, jobs, *, clock: Clock | None = None) -> Scheduler:
    """Register the four batch jobs at their configured hours."""

    scheduler = Scheduler(clock=clock, poll_seconds=settings.scheduler_poll_seconds)
    scheduler.add("lock-overdue", DailyAt(settings.lock_overdue_hour), jobs.lock_overdue_reports)
    scheduler.add("daily-reminders", DailyAt(settings.daily_reminder_hour), jobs.send_daily_reminders)
    scheduler.add("weekly-rollup", WeeklyAt(0, settings.weekly_rollup_hour), jobs.generate_weekly_reports)
    scheduler.add("monthly-rollup", MonthlyAt(1, settings.monthly_rollup_hour, 30), jobs.generate_monthly_reports)
    return scheduler
