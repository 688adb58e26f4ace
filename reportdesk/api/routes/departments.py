"""Department and unit endpoints; reads are open to any signed-in user."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from reportdesk.core.auth import RequestUserContext, get_current_user_context, require_roles
from reportdesk.core.clock import Clock, get_clock
from reportdesk.db.dependencies import get_db_session
from reportdesk.models.entities import UserRole
from reportdesk.services.department_service import DepartmentData, DepartmentService

router = APIRouter(prefix="/departments", tags=["departments"])

require_hr = require_roles(UserRole.HR, UserRole.ADMIN)


class DepartmentCreatePayload(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)


class DepartmentUpdatePayload(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)


class UnitCreatePayload(BaseModel):
    name: str = Field(min_length=1, max_length=255)


def _service(db: Session, clock: Clock) -> DepartmentService:
    return DepartmentService(db, clock=clock)


@router.get("")
def list_departments(
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, list[object]]:
    service = _service(db, clock)
    return {"items": [service.serialize(department, units) for department, units in service.list_departments()]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_department(
    payload: DepartmentCreatePayload,
    context: RequestUserContext = Depends(require_hr),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _service(db, clock)
    department = service.create_department(
        context=context,
        data=DepartmentData(name=payload.name, description=payload.description),
    )
    return service.serialize(department, [])


@router.get("/{department_id}")
def get_department(
    department_id: UUID,
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _service(db, clock)
    department, units = service.get_department(department_id)
    return service.serialize(department, units)


@router.patch("/{department_id}")
def update_department(
    department_id: UUID,
    payload: DepartmentUpdatePayload,
    context: RequestUserContext = Depends(require_hr),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _service(db, clock)
    department = service.update_department(
        context=context,
        department_id=department_id,
        data=DepartmentData(name=payload.name, description=payload.description),
    )
    return service.serialize(department)


@router.delete("/{department_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_department(
    department_id: UUID,
    context: RequestUserContext = Depends(require_hr),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> Response:
    _service(db, clock).delete_department(context=context, department_id=department_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{department_id}/units")
def list_units(
    department_id: UUID,
    _: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, list[object]]:
    service = _service(db, clock)
    return {"items": [service.serialize_unit(unit) for unit in service.list_units(department_id)]}


@router.post("/{department_id}/units", status_code=status.HTTP_201_CREATED)
def create_unit(
    department_id: UUID,
    payload: UnitCreatePayload,
    context: RequestUserContext = Depends(require_hr),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _service(db, clock)
    return service.serialize_unit(service.create_unit(context=context, department_id=department_id, name=payload.name))
