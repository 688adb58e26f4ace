"""Report lifecycle, version history, export and comment endpoints."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from reportdesk.core.auth import RequestUserContext, get_current_user_context
from reportdesk.core.clock import Clock, get_clock
from reportdesk.db.dependencies import get_db_session
from reportdesk.models.entities import ReportStatus, ReportType
from reportdesk.repositories.report_repository import ReportFilters
from reportdesk.services.comment_service import CommentService
from reportdesk.services.export_service import ExportService
from reportdesk.services.report_lifecycle import ReportCreateData, ReportLifecycleService, ReportUpdateData

router = APIRouter(tags=["reports"])


class ReportCreatePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: ReportType
    report_date: date = Field(alias="date")
    title: str | None = Field(default=None, max_length=255)
    content: dict | None = None
    week_number: int | None = Field(default=None, ge=1, le=53)
    month: int | None = Field(default=None, ge=1, le=12)
    year: int | None = Field(default=None, ge=1900, le=9999)


class ReportUpdatePayload(BaseModel):
    title: str | None = Field(default=None, max_length=255)
    content: dict | None = None
    edit_reason: str | None = Field(default=None, max_length=1000)


class CommentCreatePayload(BaseModel):
    content: str = Field(min_length=1, max_length=10000)
    parent_id: UUID | None = None


class CommentUpdatePayload(BaseModel):
    content: str = Field(min_length=1, max_length=10000)


def _lifecycle(db: Session, clock: Clock) -> ReportLifecycleService:
    return ReportLifecycleService(db, clock=clock)


def _serialize_page(service: ReportLifecycleService, page) -> dict[str, object]:
    return {
        "items": [service.serialize(report) for report in page.items],
        "meta": {
            "total": page.total,
            "page": page.page,
            "limit": page.limit,
            "total_pages": page.total_pages,
        },
    }


@router.get("/reports")
def list_reports(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    owner_id: UUID | None = None,
    department_id: UUID | None = None,
    unit_id: UUID | None = None,
    type: ReportType | None = None,
    status_filter: ReportStatus | None = Query(default=None, alias="status"),
    start_date: date | None = None,
    end_date: date | None = None,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _lifecycle(db, clock)
    result = service.list_reports(
        context=context,
        filters=ReportFilters(
            owner_id=owner_id,
            department_id=department_id,
            unit_id=unit_id,
            type=type,
            status=status_filter,
            start_date=start_date,
            end_date=end_date,
        ),
        page=page,
        limit=limit,
    )
    return _serialize_page(service, result)


@router.post("/reports", status_code=status.HTTP_201_CREATED)
def create_report(
    payload: ReportCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _lifecycle(db, clock)
    report = service.create_report(
        context=context,
        data=ReportCreateData(
            type=payload.type,
            report_date=payload.report_date,
            title=payload.title,
            content=payload.content,
            week_number=payload.week_number,
            month=payload.month,
            year=payload.year,
        ),
    )
    return service.serialize(report)


@router.get("/reports/today")
def get_today_report(
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object | None]:
    service = _lifecycle(db, clock)
    report = service.get_today(context=context)
    return {"report": service.serialize(report) if report is not None else None}


@router.get("/reports/{report_id}")
def get_report(
    report_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _lifecycle(db, clock)
    return service.serialize(service.get_report(context=context, report_id=report_id))


@router.patch("/reports/{report_id}")
def update_report(
    report_id: UUID,
    payload: ReportUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _lifecycle(db, clock)
    report = service.update_report(
        context=context,
        report_id=report_id,
        data=ReportUpdateData(title=payload.title, content=payload.content, edit_reason=payload.edit_reason),
    )
    return service.serialize(report)


@router.delete("/reports/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_report(
    report_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> Response:
    _lifecycle(db, clock).delete_report(context=context, report_id=report_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/reports/{report_id}/submit")
def submit_report(
    report_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _lifecycle(db, clock)
    return service.serialize(service.submit_report(context=context, report_id=report_id))


@router.post("/reports/{report_id}/review")
def review_report(
    report_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _lifecycle(db, clock)
    return service.serialize(service.review_report(context=context, report_id=report_id))


@router.post("/reports/{report_id}/lock")
def lock_report(
    report_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _lifecycle(db, clock)
    return service.serialize(service.lock_report(context=context, report_id=report_id))


@router.post("/reports/{report_id}/unlock")
def unlock_report(
    report_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _lifecycle(db, clock)
    return service.serialize(service.unlock_report(context=context, report_id=report_id))


@router.get("/reports/{report_id}/versions")
def list_report_versions(
    report_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, list[object]]:
    service = _lifecycle(db, clock)
    versions = service.list_versions(context=context, report_id=report_id)
    return {"items": [service.serialize_version(version) for version in versions]}


@router.get("/reports/{report_id}/export")
def export_report(
    report_id: UUID,
    format: str = Query(default="xlsx"),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> Response:
    exported = ExportService(db, clock=clock).export_report(context=context, report_id=report_id, format_name=format)
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )


# ---------- Comments ----------
@router.get("/reports/{report_id}/comments")
def list_report_comments(
    report_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, list[object]]:
    service = CommentService(db, clock=clock)
    threads = service.list_threads(context=context, report_id=report_id)
    return {"items": [service.serialize_thread(thread) for thread in threads]}


@router.post("/reports/{report_id}/comments", status_code=status.HTTP_201_CREATED)
def create_report_comment(
    report_id: UUID,
    payload: CommentCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = CommentService(db, clock=clock)
    comment = service.create_comment(
        context=context,
        report_id=report_id,
        content=payload.content,
        parent_id=payload.parent_id,
    )
    return service.serialize(comment)


@router.patch("/comments/{comment_id}")
def update_comment(
    comment_id: UUID,
    payload: CommentUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = CommentService(db, clock=clock)
    return service.serialize(service.update_comment(context=context, comment_id=comment_id, content=payload.content))


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(
    comment_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> Response:
    CommentService(db, clock=clock).delete_comment(context=context, comment_id=comment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
