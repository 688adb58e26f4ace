"""Roll-up compilation of daily reports into weekly, monthly and annual reports.

Compilation is an upsert keyed by (owner, type, date range): compiling the
same period twice refreshes the existing roll-up instead of adding a second
one. Fan-out variants compile every owner with sources independently and
commit per owner.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from itertools import groupby
from uuid import UUID

from sqlalchemy.orm import Session

from reportdesk.core.auth import RequestUserContext
from reportdesk.core.clock import Clock
from reportdesk.core.errors import BadRequestError, ForbiddenError, NotFoundError
from reportdesk.core.periods import Period, calendar_month, calendar_year, iso_week
from reportdesk.models.entities import CompiledReport, Report, ReportStatus, ReportType, UserRole
from reportdesk.repositories.compiled_report_repository import CompiledReportRepository
from reportdesk.repositories.report_repository import ReportRepository

logger = logging.getLogger(__name__)

QUALIFYING_STATUSES = (ReportStatus.SUBMITTED, ReportStatus.REVIEWED, ReportStatus.LOCKED)


@dataclass(slots=True)
class BatchResult:
    """Outcome of one fan-out or batch job run."""

    succeeded: list[object] = field(default_factory=list)
    failed: list[tuple[object, Exception]] = field(default_factory=list)
    skipped: bool = False

    def serialize(self) -> dict[str, object]:
        return {
            "succeeded": [str(item) for item in self.succeeded],
            "failed": [{"item": str(item), "error": str(error)} for item, error in self.failed],
            "skipped": self.skipped,
        }


@dataclass(slots=True)
class CompiledReportPage:
    items: list[CompiledReport]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def _daily_summary(report: Report) -> dict[str, object]:
    return {
        "id": str(report.id),
        "date": report.report_date.isoformat(),
        "title": report.title,
        "content": report.content,
    }


def _compiled_summary(compiled: CompiledReport) -> dict[str, object]:
    return {
        "id": str(compiled.id),
        "title": compiled.title,
        "date_range_start": compiled.date_range_start.isoformat(),
        "date_range_end": compiled.date_range_end.isoformat(),
        "content": compiled.content,
    }


class ReportAggregator:
    def __init__(self, db: Session, *, clock: Clock | None = None) -> None:
        self.db = db
        self.reports = ReportRepository(db)
        self.compiled = CompiledReportRepository(db)
        self.clock = clock or Clock()

    @staticmethod
    def serialize(compiled: CompiledReport) -> dict[str, object]:
        return {
            "id": str(compiled.id),
            "owner_id": str(compiled.owner_id),
            "type": compiled.type.value,
            "title": compiled.title,
            "content": compiled.content,
            "date_range_start": compiled.date_range_start.isoformat(),
            "date_range_end": compiled.date_range_end.isoformat(),
            "included_reports": list(compiled.included_reports or []),
            "status": compiled.status.value,
            "created_at": compiled.created_at.isoformat(),
            "updated_at": compiled.updated_at.isoformat(),
        }

    # ---------- Reads ----------
    def get_compiled_report(self, *, context: RequestUserContext, compiled_report_id: UUID) -> CompiledReport:
        compiled = self.compiled.get(compiled_report_id)
        if compiled is None:
            raise NotFoundError("Compiled report not found.")
        if context.role is UserRole.STAFF and compiled.owner_id != context.user_id:
            raise ForbiddenError("Access denied.")
        return compiled

    def list_compiled_reports(
        self,
        *,
        context: RequestUserContext,
        report_type: ReportType | None = None,
        department_id: UUID | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> CompiledReportPage:
        page = max(page, 1)
        limit = max(limit, 1)
        owner_id = None
        if context.role is UserRole.STAFF:
            owner_id = context.user_id
            department_id = None
        elif context.role is UserRole.HOD and context.department_id is not None:
            department_id = context.department_id

        items, total = self.compiled.list_paginated(
            owner_id=owner_id,
            department_id=department_id,
            report_type=report_type,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return CompiledReportPage(items=items, total=total, page=page, limit=limit)

    # ---------- Upsert ----------
    def upsert(
        self,
        *,
        owner_id: UUID,
        report_type: ReportType,
        period: Period,
        title: str,
        content: dict,
        included_reports: Sequence[UUID],
    ) -> CompiledReport:
        """Create or refresh the roll-up for (owner, type, period); flushes, does not commit."""

        now = self.clock.utcnow()
        included = [str(report_id) for report_id in included_reports]
        existing = self.compiled.get_for_period(
            owner_id=owner_id,
            report_type=report_type,
            start=period.start,
            end=period.end,
        )
        if existing is not None:
            existing.title = title
            existing.content = content
            existing.included_reports = included
            existing.updated_at = now
            self.db.flush()
            return existing

        return self.compiled.add(
            CompiledReport(
                owner_id=owner_id,
                type=report_type,
                title=title,
                content=content,
                date_range_start=period.start,
                date_range_end=period.end,
                included_reports=included,
                status=ReportStatus.DRAFT,
                created_at=now,
                updated_at=now,
            )
        )

    # ---------- Builders ----------
    def _build_weekly(self, owner_id: UUID, period: Period, dailies: Sequence[Report]) -> CompiledReport:
        iso_year, week_number, _ = period.start.isocalendar()
        ordered = sorted(dailies, key=lambda report: report.report_date)
        content = {
            "type": "weekly",
            "week_number": week_number,
            "year": iso_year,
            "reports": [_daily_summary(report) for report in ordered],
        }
        return self.upsert(
            owner_id=owner_id,
            report_type=ReportType.WEEKLY,
            period=period,
            title=f"Weekly Report - Week {week_number}, {iso_year}",
            content=content,
            included_reports=[report.id for report in ordered],
        )

    def _build_monthly(
        self,
        owner_id: UUID,
        period: Period,
        dailies: Sequence[Report],
        weeklies: Sequence[CompiledReport],
    ) -> CompiledReport:
        ordered_dailies = sorted(dailies, key=lambda report: report.report_date)
        ordered_weeklies = sorted(weeklies, key=lambda compiled: compiled.date_range_start)
        content = {
            "type": "monthly",
            "month": period.start.month,
            "year": period.start.year,
            "daily_reports": [_daily_summary(report) for report in ordered_dailies],
            "weekly_reports": [_compiled_summary(compiled) for compiled in ordered_weeklies],
        }
        return self.upsert(
            owner_id=owner_id,
            report_type=ReportType.MONTHLY,
            period=period,
            title=f"Monthly Report - {period.start.strftime('%B')} {period.start.year}",
            content=content,
            included_reports=[report.id for report in ordered_dailies]
            + [compiled.id for compiled in ordered_weeklies],
        )

    # ---------- Single owner ----------
    def compile_weekly(self, *, owner_id: UUID, anchor: date) -> CompiledReport:
        period = iso_week(anchor)
        dailies = self.reports.list_daily_reports_in_range(
            start=period.start,
            end=period.end,
            statuses=QUALIFYING_STATUSES,
            owner_id=owner_id,
        )
        if not dailies:
            raise BadRequestError("No daily reports found for this week")

        compiled = self._build_weekly(owner_id, period, dailies)
        self.db.commit()
        self.db.refresh(compiled)
        return compiled

    def compile_monthly(self, *, owner_id: UUID, anchor: date) -> CompiledReport:
        period = calendar_month(anchor)
        dailies = self.reports.list_daily_reports_in_range(
            start=period.start,
            end=period.end,
            statuses=QUALIFYING_STATUSES,
            owner_id=owner_id,
        )
        weeklies = self.compiled.list_within(
            report_type=ReportType.WEEKLY,
            start=period.start,
            end=period.end,
            owner_id=owner_id,
        )
        if not dailies and not weeklies:
            raise BadRequestError("No reports found for this month")

        compiled = self._build_monthly(owner_id, period, dailies, weeklies)
        self.db.commit()
        self.db.refresh(compiled)
        return compiled

    def compile_annual(self, *, owner_id: UUID, year: int, months: Iterable[int] | None = None) -> CompiledReport:
        selected = sorted(set(months)) if months else []
        invalid = [month for month in selected if not 1 <= month <= 12]
        if invalid:
            raise BadRequestError(f"Invalid month numbers: {', '.join(str(month) for month in invalid)}.")

        period = calendar_year(year)
        monthlies = self.compiled.list_starting_in(
            owner_id=owner_id,
            report_type=ReportType.MONTHLY,
            start=period.start,
            end=period.end,
        )
        if selected:
            monthlies = [compiled for compiled in monthlies if compiled.date_range_start.month in selected]
        if not monthlies:
            raise BadRequestError("No monthly reports found for this year")

        content = {
            "type": "annual",
            "year": year,
            "months": selected or sorted({compiled.date_range_start.month for compiled in monthlies}),
            "monthly_reports": [
                {**_compiled_summary(compiled), "month": compiled.date_range_start.month} for compiled in monthlies
            ],
        }
        compiled = self.upsert(
            owner_id=owner_id,
            report_type=ReportType.ANNUAL,
            period=period,
            title=f"Annual Report - {year}",
            content=content,
            included_reports=[compiled.id for compiled in monthlies],
        )
        self.db.commit()
        self.db.refresh(compiled)
        return compiled

    # ---------- Fan-out ----------
    def _fan_out(self, label: str, owner_ids: Iterable[UUID], build) -> BatchResult:
        result = BatchResult()
        for owner_id in owner_ids:
            try:
                build(owner_id)
                self.db.commit()
            except Exception as exc:
                self.db.rollback()
                logger.exception("%s compilation failed for owner %s", label, owner_id)
                result.failed.append((owner_id, exc))
            else:
                result.succeeded.append(owner_id)
        return result

    def compile_weekly_for_all(self, anchor: date) -> BatchResult:
        period = iso_week(anchor)
        dailies = self.reports.list_daily_reports_in_range(
            start=period.start,
            end=period.end,
            statuses=QUALIFYING_STATUSES,
        )
        by_owner = {owner_id: list(group) for owner_id, group in groupby(dailies, key=lambda r: r.owner_id)}
        return self._fan_out(
            "Weekly",
            by_owner,
            lambda owner_id: self._build_weekly(owner_id, period, by_owner[owner_id]),
        )

    def compile_monthly_for_all(self, anchor: date) -> BatchResult:
        """Monthly fan-out; only draft weekly roll-ups are taken as sources."""

        period = calendar_month(anchor)
        dailies = self.reports.list_daily_reports_in_range(
            start=period.start,
            end=period.end,
            statuses=QUALIFYING_STATUSES,
        )
        weeklies = self.compiled.list_within(
            report_type=ReportType.WEEKLY,
            start=period.start,
            end=period.end,
            statuses=(ReportStatus.DRAFT,),
        )
        daily_by_owner = {owner_id: list(group) for owner_id, group in groupby(dailies, key=lambda r: r.owner_id)}
        weekly_by_owner = {
            owner_id: list(group) for owner_id, group in groupby(weeklies, key=lambda c: c.owner_id)
        }
        owner_ids = list(daily_by_owner) + [owner_id for owner_id in weekly_by_owner if owner_id not in daily_by_owner]
        return self._fan_out(
            "Monthly",
            owner_ids,
            lambda owner_id: self._build_monthly(
                owner_id,
                period,
                daily_by_owner.get(owner_id, []),
                weekly_by_owner.get(owner_id, []),
            ),
        )
