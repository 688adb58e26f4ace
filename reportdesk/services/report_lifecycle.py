"""Report status machine, edit versioning and report reads.

Transitions::

    draft -> submitted -> reviewed
    {draft, submitted, reviewed} -> locked     (lock, HR/admin)
    locked -> submitted                        (unlock, HR/admin)

Every mutation commits exactly once, so a version snapshot and the edit it
records, or a transition and the notification it emits, land together.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from reportdesk.core.auth import LOCK_ROLES, RequestUserContext, at_least
from reportdesk.core.clock import Clock
from reportdesk.core.config import Settings, get_settings
from reportdesk.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ReportLockedError,
)
from reportdesk.core.periods import format_display_date, iso_week
from reportdesk.models.entities import Report, ReportStatus, ReportType, ReportVersion, UserRole
from reportdesk.repositories.report_repository import ReportFilters, ReportRepository
from reportdesk.services.deadline_service import DeadlineService
from reportdesk.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

DUPLICATE_DAILY_MESSAGE = "A daily report already exists for this date"


@dataclass(slots=True)
class ReportCreateData:
    type: ReportType
    report_date: date
    title: str | None = None
    content: dict | None = None
    week_number: int | None = None
    month: int | None = None
    year: int | None = None


@dataclass(slots=True)
class ReportUpdateData:
    title: str | None = None
    content: dict | None = None
    edit_reason: str | None = None


@dataclass(slots=True)
class ReportPage:
    items: list[Report]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def default_report_title(report_type: ReportType, anchor: date) -> str:
    if report_type is ReportType.DAILY:
        return f"Daily Report - {format_display_date(anchor)}"
    if report_type is ReportType.WEEKLY:
        week = iso_week(anchor)
        start = f"{week.start.strftime('%b')} {week.start.day}"
        end = f"{week.end.strftime('%b')} {week.end.day}, {week.end.year}"
        return f"Weekly Report - {start} - {end}"
    if report_type is ReportType.MONTHLY:
        return f"Monthly Report - {anchor.strftime('%B')} {anchor.year}"
    return f"Annual Report - {anchor.year}"


class ReportLifecycleService:
    def __init__(
        self,
        db: Session,
        *,
        clock: Clock | None = None,
        notifier: NotificationService | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.repo = ReportRepository(db)
        self.clock = clock or Clock()
        self.notifier = notifier or NotificationService(db, clock=self.clock)
        self.settings = settings or get_settings()
        self.deadlines = DeadlineService(db, clock=self.clock)

    @staticmethod
    def serialize(report: Report) -> dict[str, object]:
        return {
            "id": str(report.id),
            "owner_id": str(report.owner_id),
            "type": report.type.value,
            "title": report.title,
            "content": report.content,
            "status": report.status.value,
            "date": report.report_date.isoformat(),
            "week_number": report.week_number,
            "month": report.month,
            "year": report.year,
            "is_locked": report.is_locked,
            "locked_by_id": str(report.locked_by_id) if report.locked_by_id else None,
            "locked_at": report.locked_at.isoformat() if report.locked_at else None,
            "deadline": report.deadline.isoformat() if report.deadline else None,
            "submitted_at": report.submitted_at.isoformat() if report.submitted_at else None,
            "created_at": report.created_at.isoformat(),
            "updated_at": report.updated_at.isoformat(),
        }

    @staticmethod
    def serialize_version(version: ReportVersion) -> dict[str, object]:
        return {
            "id": str(version.id),
            "report_id": str(version.report_id),
            "content": version.content,
            "edited_by_id": str(version.edited_by_id),
            "edit_reason": version.edit_reason,
            "created_at": version.created_at.isoformat(),
        }

    def _get(self, report_id: UUID) -> Report:
        report = self.repo.get_report(report_id)
        if report is None:
            raise NotFoundError("Report not found.")
        return report

    @staticmethod
    def _ensure_can_lock(context: RequestUserContext, action: str) -> None:
        if context.role not in LOCK_ROLES:
            raise ForbiddenError(f"Only HR can {action} reports.")

    # ---------- Reads ----------
    def get_report(self, *, context: RequestUserContext, report_id: UUID) -> Report:
        report = self._get(report_id)
        if context.role is UserRole.STAFF and report.owner_id != context.user_id:
            raise ForbiddenError("Access denied.")
        return report

    def list_reports(
        self,
        *,
        context: RequestUserContext,
        filters: ReportFilters,
        page: int = 1,
        limit: int = 10,
    ) -> ReportPage:
        """Role-scoped listing: staff see their own, HOD their department, HR/admin everything."""

        page = max(page, 1)
        limit = max(limit, 1)
        if context.role is UserRole.STAFF:
            filters.owner_id = context.user_id
            filters.department_id = None
            filters.unit_id = None
        elif context.role is UserRole.HOD and context.department_id is not None:
            filters.department_id = context.department_id

        items, total = self.repo.list_reports(filters, offset=(page - 1) * limit, limit=limit)
        return ReportPage(items=items, total=total, page=page, limit=limit)

    def get_today(self, *, context: RequestUserContext) -> Report | None:
        return self.repo.get_daily_report(context.user_id, self.clock.today())

    def list_versions(self, *, context: RequestUserContext, report_id: UUID) -> list[ReportVersion]:
        report = self._get(report_id)
        if report.owner_id != context.user_id and not context.is_elevated:
            raise ForbiddenError("Access denied.")
        return self.repo.list_versions(report.id)

    # ---------- Transitions ----------
    def create_report(self, *, context: RequestUserContext, data: ReportCreateData) -> Report:
        if data.type is ReportType.DAILY and self.repo.get_daily_report(context.user_id, data.report_date):
            raise ConflictError(DUPLICATE_DAILY_MESSAGE)

        anchor = data.report_date
        now = self.clock.utcnow()
        report = Report(
            owner_id=context.user_id,
            type=data.type,
            title=(data.title or "").strip() or default_report_title(data.type, anchor),
            content=data.content,
            status=ReportStatus.DRAFT,
            report_date=anchor,
            week_number=data.week_number or (anchor.isocalendar()[1] if data.type is ReportType.WEEKLY else None),
            month=data.month or (anchor.month if data.type in (ReportType.MONTHLY, ReportType.ANNUAL) else None),
            year=data.year or anchor.year,
            is_locked=False,
            deadline=self.deadlines.deadline_for_report(context, data.type, anchor),
            created_at=now,
            updated_at=now,
        )
        try:
            self.repo.add_report(report)
        except IntegrityError as exc:
            # Concurrent create for the same owner and day.
            self.db.rollback()
            raise ConflictError(DUPLICATE_DAILY_MESSAGE) from exc
        self.db.commit()
        self.db.refresh(report)
        return report

    def update_report(self, *, context: RequestUserContext, report_id: UUID, data: ReportUpdateData) -> Report:
        report = self._get(report_id)
        if report.is_locked:
            raise ReportLockedError("Cannot edit a locked report")

        is_owner = report.owner_id == context.user_id
        if not is_owner and not context.is_elevated:
            raise ForbiddenError("You can only edit your own reports.")

        if not is_owner:
            self.repo.add_version(
                ReportVersion(
                    report_id=report.id,
                    content=report.content,
                    edited_by_id=context.user_id,
                    edit_reason=(data.edit_reason or "").strip() or self.settings.default_edit_reason,
                    created_at=self.clock.utcnow(),
                )
            )

        if data.title is not None and data.title.strip():
            report.title = data.title.strip()
        if data.content is not None:
            report.content = data.content
        report.updated_at = self.clock.utcnow()
        self.db.commit()
        self.db.refresh(report)
        return report

    def submit_report(self, *, context: RequestUserContext, report_id: UUID) -> Report:
        report = self._get(report_id)
        if report.owner_id != context.user_id:
            raise ForbiddenError("You can only submit your own reports.")
        if report.is_locked:
            raise ReportLockedError("Cannot submit a locked report")

        now = self.clock.utcnow()
        report.status = ReportStatus.SUBMITTED
        report.submitted_at = now
        report.updated_at = now
        self.db.commit()
        self.db.refresh(report)
        return report

    def review_report(self, *, context: RequestUserContext, report_id: UUID) -> Report:
        if not at_least(context.role, UserRole.HR):
            raise ForbiddenError("Only HR or HOD can review reports.")
        report = self._get(report_id)
        if report.status is not ReportStatus.SUBMITTED:
            raise InvalidTransitionError(f"Cannot review a report in status '{report.status.value}'.")

        report.status = ReportStatus.REVIEWED
        report.updated_at = self.clock.utcnow()
        self.db.commit()
        self.db.refresh(report)
        return report

    def lock_report(self, *, context: RequestUserContext, report_id: UUID) -> Report:
        self._ensure_can_lock(context, "lock")
        report = self._get(report_id)
        apply_lock(report, locked_by_id=context.user_id, clock=self.clock)
        self.notifier.notify_report_locked(report)
        self.db.commit()
        self.db.refresh(report)
        logger.info("Report %s locked by %s", report.id, context.user_id)
        return report

    def unlock_report(self, *, context: RequestUserContext, report_id: UUID) -> Report:
        self._ensure_can_lock(context, "unlock")
        report = self._get(report_id)
        if not report.is_locked:
            raise InvalidTransitionError(f"Cannot unlock a report in status '{report.status.value}'.")

        report.is_locked = False
        report.status = ReportStatus.SUBMITTED
        report.locked_by_id = None
        report.locked_at = None
        report.updated_at = self.clock.utcnow()
        self.notifier.notify_report_unlocked(report)
        self.db.commit()
        self.db.refresh(report)
        logger.info("Report %s unlocked by %s", report.id, context.user_id)
        return report

    def delete_report(self, *, context: RequestUserContext, report_id: UUID) -> None:
        report = self._get(report_id)
        if report.owner_id != context.user_id:
            raise ForbiddenError("You can only delete your own reports.")
        if report.is_locked:
            raise ReportLockedError("Cannot delete a locked report")
        if report.status is not ReportStatus.DRAFT:
            raise ForbiddenError("Only draft reports can be deleted.")
        self.repo.delete_report(report)
        self.db.commit()


def apply_lock(report: Report, *, locked_by_id: UUID, clock: Clock) -> None:
    """Set the lock fields together; shared by manual and deadline-driven locking."""

    now = clock.utcnow()
    report.is_locked = True
    report.status = ReportStatus.LOCKED
    report.locked_by_id = locked_by_id
    report.locked_at = now
    report.updated_at = now
