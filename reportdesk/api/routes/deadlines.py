"""Deadline rule management endpoints (HR/admin)."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from reportdesk.core.auth import RequestUserContext, get_current_user_context
from reportdesk.core.clock import Clock, get_clock
from reportdesk.db.dependencies import get_db_session
from reportdesk.models.entities import DeadlineType
from reportdesk.services.deadline_service import DeadlineCreateData, DeadlineService, DeadlineUpdateData

router = APIRouter(prefix="/deadlines", tags=["deadlines"])


class DeadlineCreatePayload(BaseModel):
    type: DeadlineType
    deadline_time: str = Field(min_length=5, max_length=5)
    department_id: UUID | None = None
    unit_id: UUID | None = None
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    day_of_month: int | None = Field(default=None, ge=1, le=31)


class DeadlineUpdatePayload(BaseModel):
    deadline_time: str | None = Field(default=None, min_length=5, max_length=5)
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    day_of_month: int | None = Field(default=None, ge=1, le=31)
    is_active: bool | None = None


def _service(db: Session, clock: Clock) -> DeadlineService:
    return DeadlineService(db, clock=clock)


@router.get("")
def list_deadlines(
    department_id: UUID | None = None,
    unit_id: UUID | None = None,
    type: DeadlineType | None = None,
    is_active: bool | None = None,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, list[object]]:
    service = _service(db, clock)
    rules = service.list_deadlines(
        context=context,
        department_id=department_id,
        unit_id=unit_id,
        deadline_type=type,
        is_active=is_active,
    )
    return {"items": [service.serialize(rule) for rule in rules]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_deadline(
    payload: DeadlineCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _service(db, clock)
    rule = service.create_deadline(
        context=context,
        data=DeadlineCreateData(
            type=payload.type,
            deadline_time=payload.deadline_time,
            department_id=payload.department_id,
            unit_id=payload.unit_id,
            day_of_week=payload.day_of_week,
            day_of_month=payload.day_of_month,
        ),
    )
    return service.serialize(rule)


@router.get("/{deadline_id}")
def get_deadline(
    deadline_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _service(db, clock)
    return service.serialize(service.get_deadline(context=context, deadline_id=deadline_id))


@router.get("/{deadline_id}/next")
def get_next_deadline(
    deadline_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, str]:
    next_at = _service(db, clock).next_occurrence(context=context, deadline_id=deadline_id)
    return {"deadline_id": str(deadline_id), "next_deadline": next_at.isoformat()}


@router.patch("/{deadline_id}")
def update_deadline(
    deadline_id: UUID,
    payload: DeadlineUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _service(db, clock)
    rule = service.update_deadline(
        context=context,
        deadline_id=deadline_id,
        data=DeadlineUpdateData(
            deadline_time=payload.deadline_time,
            day_of_week=payload.day_of_week,
            day_of_month=payload.day_of_month,
            is_active=payload.is_active,
        ),
    )
    return service.serialize(rule)


@router.delete("/{deadline_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_deadline(
    deadline_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> Response:
    _service(db, clock).delete_deadline(context=context, deadline_id=deadline_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
