"""Scheduled batch job bodies.

Each entry point takes no arguments, opens its own session, isolates
per-item failures and returns a ``BatchResult``. Errors outside the item
loop are logged and swallowed so a failing run never takes the scheduler
thread down with it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from sqlalchemy.orm import Session

from reportdesk.core.clock import Clock
from reportdesk.core.config import Settings, get_settings
from reportdesk.core.periods import format_display_date, last_completed_week_anchor, previous_month_anchor
from reportdesk.db.session import SessionLocal
from reportdesk.models.entities import User, UserRole
from reportdesk.repositories.report_repository import ReportRepository
from reportdesk.repositories.user_repository import UserRepository
from reportdesk.services.aggregator import BatchResult, ReportAggregator
from reportdesk.services.mailer import EmailDispatcher, SmtpEmailDispatcher, daily_reminder_email
from reportdesk.services.notification_service import NotificationService
from reportdesk.services.report_lifecycle import apply_lock

logger = logging.getLogger(__name__)

# One run per job name per process, shared by scheduled and manual triggers.
_RUN_LOCKS: dict[str, threading.Lock] = {}
_RUN_LOCKS_GUARD = threading.Lock()


def run_lock_for(name: str) -> threading.Lock:
    with _RUN_LOCKS_GUARD:
        return _RUN_LOCKS.setdefault(name, threading.Lock())


def ensure_system_user(db: Session, settings: Settings, clock: Clock) -> User:
    """Reserved inactive admin recorded as the locker for deadline-driven locks."""

    users = UserRepository(db)
    user = users.get_by_email(settings.system_user_email)
    if user is not None:
        return user

    now = clock.utcnow()
    user = users.add(
        User(
            external_subject=f"system:{settings.system_user_email}",
            email=settings.system_user_email,
            first_name="System",
            last_name="",
            role=UserRole.ADMIN,
            is_active=False,
            created_at=now,
            updated_at=now,
        )
    )
    db.commit()
    return user


class BatchJobs:
    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        *,
        clock: Clock | None = None,
        email: EmailDispatcher | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.clock = clock or Clock()
        self.settings = settings or get_settings()
        self.email = email or SmtpEmailDispatcher(self.settings)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self.session_factory()
        try:
            yield session
        finally:
            session.close()

    def _run(self, name: str, body: Callable[[Session], BatchResult]) -> BatchResult:
        run_lock = run_lock_for(name)
        if not run_lock.acquire(blocking=False):
            logger.warning("Batch job %s skipped: another run is in progress", name)
            return BatchResult(skipped=True)

        logger.info("Batch job %s started", name)
        try:
            with self._session() as db:
                result = body(db)
        except Exception:
            logger.exception("Batch job %s failed", name)
            return BatchResult()
        finally:
            run_lock.release()
        logger.info(
            "Batch job %s finished: %d succeeded, %d failed",
            name,
            len(result.succeeded),
            len(result.failed),
        )
        return result

    # ---------- Entry points ----------
    def lock_overdue_reports(self) -> BatchResult:
        return self._run("lock-overdue", self._lock_overdue)

    def send_daily_reminders(self) -> BatchResult:
        return self._run("daily-reminders", self._daily_reminders)

    def generate_weekly_reports(self) -> BatchResult:
        return self._run("weekly-rollup", self._weekly_rollup)

    def generate_monthly_reports(self) -> BatchResult:
        return self._run("monthly-rollup", self._monthly_rollup)

    def registry(self) -> dict[str, Callable[[], BatchResult]]:
        return {
            "lock-overdue": self.lock_overdue_reports,
            "daily-reminders": self.send_daily_reminders,
            "weekly-rollup": self.generate_weekly_reports,
            "monthly-rollup": self.generate_monthly_reports,
        }

    # ---------- Bodies ----------
    def _lock_overdue(self, db: Session) -> BatchResult:
        system_user_id = ensure_system_user(db, self.settings, self.clock).id
        notifier = NotificationService(db, clock=self.clock)
        result = BatchResult()
        overdue = ReportRepository(db).list_overdue_reports(now=self.clock.utcnow())
        for report in overdue:
            report_id = report.id
            try:
                apply_lock(report, locked_by_id=system_user_id, clock=self.clock)
                notifier.notify_report_locked(report, automatic=True)
                db.commit()
            except Exception as exc:
                db.rollback()
                logger.exception("Automatic lock failed for report %s", report_id)
                result.failed.append((report_id, exc))
            else:
                result.succeeded.append(report_id)
        return result

    def _daily_reminders(self, db: Session) -> BatchResult:
        today = self.clock.today()
        notifier = NotificationService(db, clock=self.clock)
        submitted = ReportRepository(db).owners_with_daily_report_on(today)
        targets = [
            (user.id, user.email, user.first_name)
            for user in UserRepository(db).list_active_by_role(UserRole.STAFF)
            if user.id not in submitted
        ]

        result = BatchResult()
        for user_id, email, first_name in targets:
            try:
                notifier.notify_daily_reminder(user_id)
                db.commit()
            except Exception as exc:
                db.rollback()
                logger.exception("Reminder failed for user %s", user_id)
                result.failed.append((user_id, exc))
                continue

            subject, body = daily_reminder_email(first_name, format_display_date(today))
            if not self.email.send(email, subject, body):
                logger.warning("Reminder email to %s was not delivered", email)
            result.succeeded.append(user_id)
        return result

    def _weekly_rollup(self, db: Session) -> BatchResult:
        anchor = last_completed_week_anchor(self.clock.today())
        return ReportAggregator(db, clock=self.clock).compile_weekly_for_all(anchor)

    def _monthly_rollup(self, db: Session) -> BatchResult:
        anchor = previous_month_anchor(self.clock.today())
        return ReportAggregator(db, clock=self.clock).compile_monthly_for_all(anchor)
