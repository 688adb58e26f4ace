"""Compiled (roll-up) report endpoints."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from reportdesk.core.auth import RequestUserContext, get_current_user_context
from reportdesk.core.clock import Clock, get_clock
from reportdesk.db.dependencies import get_db_session
from reportdesk.models.entities import ReportType
from reportdesk.services.aggregator import ReportAggregator
from reportdesk.services.export_service import ExportService

router = APIRouter(prefix="/compiled-reports", tags=["compiled-reports"])


class PeriodCompilePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    anchor: date = Field(alias="date")


class AnnualCompilePayload(BaseModel):
    year: int = Field(ge=1900, le=9999)
    months: list[int] | None = None


def _aggregator(db: Session, clock: Clock) -> ReportAggregator:
    return ReportAggregator(db, clock=clock)


@router.get("")
def list_compiled_reports(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    type: ReportType | None = None,
    department_id: UUID | None = None,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _aggregator(db, clock)
    result = service.list_compiled_reports(
        context=context,
        report_type=type,
        department_id=department_id,
        page=page,
        limit=limit,
    )
    return {
        "items": [service.serialize(compiled) for compiled in result.items],
        "meta": {
            "total": result.total,
            "page": result.page,
            "limit": result.limit,
            "total_pages": result.total_pages,
        },
    }


@router.post("/weekly", status_code=status.HTTP_201_CREATED)
def compile_weekly_report(
    payload: PeriodCompilePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _aggregator(db, clock)
    return service.serialize(service.compile_weekly(owner_id=context.user_id, anchor=payload.anchor))


@router.post("/monthly", status_code=status.HTTP_201_CREATED)
def compile_monthly_report(
    payload: PeriodCompilePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _aggregator(db, clock)
    return service.serialize(service.compile_monthly(owner_id=context.user_id, anchor=payload.anchor))


@router.post("/annual", status_code=status.HTTP_201_CREATED)
def compile_annual_report(
    payload: AnnualCompilePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _aggregator(db, clock)
    compiled = service.compile_annual(owner_id=context.user_id, year=payload.year, months=payload.months)
    return service.serialize(compiled)


@router.get("/{compiled_report_id}")
def get_compiled_report(
    compiled_report_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _aggregator(db, clock)
    return service.serialize(service.get_compiled_report(context=context, compiled_report_id=compiled_report_id))


@router.get("/{compiled_report_id}/export")
def export_compiled_report(
    compiled_report_id: UUID,
    format: str = Query(default="xlsx"),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> Response:
    exported = ExportService(db, clock=clock).export_compiled_report(
        context=context,
        compiled_report_id=compiled_report_id,
        format_name=format,
    )
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )
