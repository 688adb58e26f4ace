"""Repository helpers for compiled (roll-up) reports."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from reportdesk.models.entities import CompiledReport, ReportStatus, ReportType, User


class CompiledReportRepository:
    """Persistence operations for weekly, monthly and annual roll-ups."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, compiled_report_id: UUID) -> CompiledReport | None:
        return self.db.scalar(select(CompiledReport).where(CompiledReport.id == compiled_report_id))

    def get_for_period(
        self,
        *,
        owner_id: UUID,
        report_type: ReportType,
        start: date,
        end: date,
    ) -> CompiledReport | None:
        return self.db.scalar(
            select(CompiledReport).where(
                and_(
                    CompiledReport.owner_id == owner_id,
                    CompiledReport.type == report_type,
                    CompiledReport.date_range_start == start,
                    CompiledReport.date_range_end == end,
                )
            )
        )

    def add(self, compiled: CompiledReport) -> CompiledReport:
        self.db.add(compiled)
        self.db.flush()
        return compiled

    def list_within(
        self,
        *,
        report_type: ReportType,
        start: date,
        end: date,
        owner_id: UUID | None = None,
        statuses: Iterable[ReportStatus] | None = None,
    ) -> list[CompiledReport]:
        """Roll-ups whose whole date range lies inside [start, end]."""

        conditions = [
            CompiledReport.type == report_type,
            CompiledReport.date_range_start >= start,
            CompiledReport.date_range_end <= end,
        ]
        if owner_id is not None:
            conditions.append(CompiledReport.owner_id == owner_id)
        if statuses is not None:
            conditions.append(CompiledReport.status.in_(list(statuses)))
        return list(
            self.db.scalars(
                select(CompiledReport)
                .where(and_(*conditions))
                .order_by(CompiledReport.owner_id.asc(), CompiledReport.date_range_start.asc())
            ).all()
        )

    def list_starting_in(
        self,
        *,
        owner_id: UUID,
        report_type: ReportType,
        start: date,
        end: date,
    ) -> list[CompiledReport]:
        return list(
            self.db.scalars(
                select(CompiledReport)
                .where(
                    and_(
                        CompiledReport.owner_id == owner_id,
                        CompiledReport.type == report_type,
                        CompiledReport.date_range_start >= start,
                        CompiledReport.date_range_start <= end,
                    )
                )
                .order_by(CompiledReport.date_range_start.asc())
            ).all()
        )

    def list_paginated(
        self,
        *,
        owner_id: UUID | None,
        department_id: UUID | None,
        report_type: ReportType | None,
        offset: int,
        limit: int,
    ) -> tuple[list[CompiledReport], int]:
        conditions = []
        if owner_id is not None:
            conditions.append(CompiledReport.owner_id == owner_id)
        if department_id is not None:
            conditions.append(CompiledReport.owner_id.in_(select(User.id).where(User.department_id == department_id)))
        if report_type is not None:
            conditions.append(CompiledReport.type == report_type)

        total = self.db.scalar(select(func.count()).select_from(CompiledReport).where(and_(True, *conditions))) or 0
        rows = self.db.scalars(
            select(CompiledReport)
            .where(and_(True, *conditions))
            .order_by(CompiledReport.created_at.desc(), CompiledReport.date_range_start.desc())
            .offset(offset)
            .limit(limit)
        ).all()
        return list(rows), int(total)
