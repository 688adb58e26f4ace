"""Repository helpers for reports, their versions and comment threads."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.orm import Session

from reportdesk.models.entities import (
    Comment,
    Notification,
    Report,
    ReportStatus,
    ReportType,
    ReportVersion,
    User,
)


@dataclass(slots=True)
class ReportFilters:
    owner_id: UUID | None = None
    department_id: UUID | None = None
    unit_id: UUID | None = None
    type: ReportType | None = None
    status: ReportStatus | None = None
    start_date: date | None = None
    end_date: date | None = None


class ReportRepository:
    """Persistence operations used by the report lifecycle and aggregator."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Reports ----------
    def get_report(self, report_id: UUID) -> Report | None:
        return self.db.scalar(select(Report).where(Report.id == report_id))

    def get_daily_report(self, owner_id: UUID, report_date: date) -> Report | None:
        return self.db.scalar(
            select(Report).where(
                and_(
                    Report.owner_id == owner_id,
                    Report.type == ReportType.DAILY,
                    Report.report_date == report_date,
                )
            )
        )

    def add_report(self, report: Report) -> Report:
        self.db.add(report)
        self.db.flush()
        return report

    def delete_report(self, report: Report) -> None:
        # Explicit cascade; SQLite does not enforce ON DELETE without a pragma.
        self.db.execute(
            update(Notification)
            .where(Notification.related_report_id == report.id)
            .values(related_report_id=None)
        )
        self.db.execute(
            delete(Comment).where(and_(Comment.report_id == report.id, Comment.parent_id.is_not(None)))
        )
        self.db.execute(delete(Comment).where(Comment.report_id == report.id))
        self.db.execute(delete(ReportVersion).where(ReportVersion.report_id == report.id))
        self.db.delete(report)
        self.db.flush()

    def _filter_conditions(self, filters: ReportFilters) -> list:
        conditions = []
        if filters.owner_id is not None:
            conditions.append(Report.owner_id == filters.owner_id)
        if filters.type is not None:
            conditions.append(Report.type == filters.type)
        if filters.status is not None:
            conditions.append(Report.status == filters.status)
        if filters.start_date is not None:
            conditions.append(Report.report_date >= filters.start_date)
        if filters.end_date is not None:
            conditions.append(Report.report_date <= filters.end_date)
        if filters.department_id is not None or filters.unit_id is not None:
            owner_scope = select(User.id)
            if filters.department_id is not None:
                owner_scope = owner_scope.where(User.department_id == filters.department_id)
            if filters.unit_id is not None:
                owner_scope = owner_scope.where(User.unit_id == filters.unit_id)
            conditions.append(Report.owner_id.in_(owner_scope))
        return conditions

    def list_reports(self, filters: ReportFilters, *, offset: int, limit: int) -> tuple[list[Report], int]:
        conditions = self._filter_conditions(filters)
        total = self.db.scalar(select(func.count()).select_from(Report).where(and_(True, *conditions))) or 0
        rows = self.db.scalars(
            select(Report)
            .where(and_(True, *conditions))
            .order_by(Report.report_date.desc(), Report.created_at.desc())
            .offset(offset)
            .limit(limit)
        ).all()
        return list(rows), int(total)

    def list_daily_reports_in_range(
        self,
        *,
        start: date,
        end: date,
        statuses: Iterable[ReportStatus],
        owner_id: UUID | None = None,
    ) -> list[Report]:
        conditions = [
            Report.type == ReportType.DAILY,
            Report.report_date >= start,
            Report.report_date <= end,
            Report.status.in_(list(statuses)),
        ]
        if owner_id is not None:
            conditions.append(Report.owner_id == owner_id)
        return list(
            self.db.scalars(
                select(Report)
                .where(and_(*conditions))
                .order_by(Report.owner_id.asc(), Report.report_date.asc(), Report.created_at.asc())
            ).all()
        )

    def list_overdue_reports(self, *, now: datetime) -> list[Report]:
        return list(
            self.db.scalars(
                select(Report)
                .where(
                    and_(
                        Report.status.in_([ReportStatus.DRAFT, ReportStatus.SUBMITTED, ReportStatus.REVIEWED]),
                        Report.deadline.is_not(None),
                        Report.deadline < now,
                        Report.is_locked.is_(False),
                    )
                )
                .order_by(Report.deadline.asc())
            ).all()
        )

    def owners_with_daily_report_on(self, report_date: date) -> set[UUID]:
        return set(
            self.db.scalars(
                select(Report.owner_id).where(
                    and_(Report.type == ReportType.DAILY, Report.report_date == report_date)
                )
            ).all()
        )

    # ---------- Versions ----------
    def add_version(self, version: ReportVersion) -> ReportVersion:
        self.db.add(version)
        self.db.flush()
        return version

    def list_versions(self, report_id: UUID) -> list[ReportVersion]:
        return list(
            self.db.scalars(
                select(ReportVersion)
                .where(ReportVersion.report_id == report_id)
                .order_by(ReportVersion.created_at.desc())
            ).all()
        )

    # ---------- Comments ----------
    def get_comment(self, comment_id: UUID) -> Comment | None:
        return self.db.scalar(select(Comment).where(Comment.id == comment_id))

    def list_comments(self, report_id: UUID) -> list[Comment]:
        return list(
            self.db.scalars(
                select(Comment)
                .where(Comment.report_id == report_id)
                .order_by(Comment.created_at.asc(), Comment.id.asc())
            ).all()
        )

    def add_comment(self, comment: Comment) -> Comment:
        self.db.add(comment)
        self.db.flush()
        return comment

    def delete_comment(self, comment: Comment) -> None:
        self.db.execute(delete(Comment).where(Comment.parent_id == comment.id))
        self.db.delete(comment)
        self.db.flush()
