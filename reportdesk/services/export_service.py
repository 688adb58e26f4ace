"""CSV/XLSX export of reports and compiled roll-ups as plain text rows."""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from io import BytesIO
from uuid import UUID

from openpyxl import Workbook
from sqlalchemy.orm import Session

from reportdesk.core.auth import RequestUserContext
from reportdesk.core.clock import Clock
from reportdesk.core.errors import BadRequestError
from reportdesk.models.entities import CompiledReport, Report
from reportdesk.repositories.user_repository import UserRepository
from reportdesk.services.aggregator import ReportAggregator
from reportdesk.services.content import extract_text
from reportdesk.services.report_lifecycle import ReportLifecycleService

EXPORT_FORMATS = {"csv", "xlsx"}

REPORT_COLUMNS = ["report_id", "type", "title", "status", "date", "owner", "text"]
COMPILED_COLUMNS = ["compiled_report_id", "type", "title", "period", "section", "source_id", "source_date", "text"]

# Keys under which each roll-up type lists its constituents.
_SECTIONS = ("reports", "daily_reports", "weekly_reports", "monthly_reports")


@dataclass(slots=True)
class ExportFilePayload:
    media_type: str
    filename: str
    content: bytes


def normalize_format(format_name: str) -> str:
    normalized = (format_name or "").strip().lower()
    if normalized not in EXPORT_FORMATS:
        raise BadRequestError("Invalid export format. Use csv or xlsx")
    return normalized


def render_rows(
    rows: list[dict[str, str]],
    columns: list[str],
    *,
    format_name: str,
    base_filename: str,
) -> ExportFilePayload:
    if format_name == "csv":
        sio = io.StringIO()
        writer = csv.DictWriter(sio, fieldnames=columns)
        writer.writeheader()
        writer.writerows(rows)
        return ExportFilePayload(
            media_type="text/csv; charset=utf-8",
            filename=f"{base_filename}.csv",
            content=sio.getvalue().encode("utf-8"),
        )

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "report"
    sheet.append(columns)
    for row in rows:
        sheet.append([row.get(column, "") for column in columns])

    output = BytesIO()
    workbook.save(output)
    return ExportFilePayload(
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        filename=f"{base_filename}.xlsx",
        content=output.getvalue(),
    )


class ExportService:
    def __init__(self, db: Session, *, clock: Clock | None = None) -> None:
        self.db = db
        self.clock = clock or Clock()
        self.users = UserRepository(db)

    def _owner_label(self, owner_id: UUID) -> str:
        owner = self.users.get(owner_id)
        if owner is None:
            return str(owner_id)
        return owner.full_name or owner.email

    def _report_rows(self, report: Report) -> list[dict[str, str]]:
        return [
            {
                "report_id": str(report.id),
                "type": report.type.value,
                "title": report.title,
                "status": report.status.value,
                "date": report.report_date.isoformat(),
                "owner": self._owner_label(report.owner_id),
                "text": extract_text(report.content),
            }
        ]

    @staticmethod
    def _compiled_rows(compiled: CompiledReport) -> list[dict[str, str]]:
        base = {
            "compiled_report_id": str(compiled.id),
            "type": compiled.type.value,
            "title": compiled.title,
            "period": f"{compiled.date_range_start.isoformat()}..{compiled.date_range_end.isoformat()}",
        }
        content = compiled.content if isinstance(compiled.content, dict) else {}
        rows: list[dict[str, str]] = []
        for section in _SECTIONS:
            entries = content.get(section)
            if not isinstance(entries, list):
                continue
            for entry in entries:
                if not isinstance(entry, dict):
                    continue
                rows.append(
                    {
                        **base,
                        "section": section,
                        "source_id": str(entry.get("id") or ""),
                        "source_date": str(entry.get("date") or entry.get("date_range_start") or ""),
                        "text": extract_text(entry.get("content")),
                    }
                )
        if not rows:
            rows.append({**base, "section": "", "source_id": "", "source_date": "", "text": extract_text(content)})
        return rows

    def export_report(self, *, context: RequestUserContext, report_id: UUID, format_name: str) -> ExportFilePayload:
        normalized = normalize_format(format_name)
        report = ReportLifecycleService(self.db, clock=self.clock).get_report(context=context, report_id=report_id)
        return render_rows(
            self._report_rows(report),
            REPORT_COLUMNS,
            format_name=normalized,
            base_filename=f"report-{report.id}",
        )

    def export_compiled_report(
        self,
        *,
        context: RequestUserContext,
        compiled_report_id: UUID,
        format_name: str,
    ) -> ExportFilePayload:
        normalized = normalize_format(format_name)
        compiled = ReportAggregator(self.db, clock=self.clock).get_compiled_report(
            context=context,
            compiled_report_id=compiled_report_id,
        )
        return render_rows(
            self._compiled_rows(compiled),
            COMPILED_COLUMNS,
            format_name=normalized,
            base_filename=f"compiled-report-{compiled.id}",
        )
