"""User directory and HR role/department/unit assignment endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from reportdesk.core.auth import RequestUserContext, get_current_user_context, require_at_least, require_roles
from reportdesk.core.clock import Clock, get_clock
from reportdesk.db.dependencies import get_db_session
from reportdesk.models.entities import UserRole
from reportdesk.repositories.user_repository import UserFilters
from reportdesk.services.user_service import UNSET, UserService, UserUpdateData

router = APIRouter(prefix="/users", tags=["users"])


class UserUpdatePayload(BaseModel):
    first_name: str | None = Field(default=None, max_length=128)
    last_name: str | None = Field(default=None, max_length=128)
    role: UserRole | None = None
    department_id: UUID | None = None
    unit_id: UUID | None = None
    is_active: bool | None = None


def _service(db: Session, clock: Clock) -> UserService:
    return UserService(db, clock=clock)


@router.get("")
def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    role: UserRole | None = None,
    department_id: UUID | None = None,
    unit_id: UUID | None = None,
    is_active: bool | None = None,
    search: str | None = Query(default=None, max_length=255),
    context: RequestUserContext = Depends(require_at_least(UserRole.HR)),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _service(db, clock)
    result = service.list_users(
        context=context,
        filters=UserFilters(
            role=role,
            department_id=department_id,
            unit_id=unit_id,
            is_active=is_active,
            search=search,
        ),
        page=page,
        limit=limit,
    )
    return {
        "items": [service.serialize(user) for user in result.items],
        "meta": {
            "total": result.total,
            "page": result.page,
            "limit": result.limit,
            "total_pages": result.total_pages,
        },
    }


@router.get("/{user_id}")
def get_user(
    user_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _service(db, clock)
    return service.serialize(service.get_user(context=context, user_id=user_id))


@router.patch("/{user_id}")
def update_user(
    user_id: UUID,
    payload: UserUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    supplied = payload.model_fields_set
    service = _service(db, clock)
    user = service.update_user(
        context=context,
        user_id=user_id,
        data=UserUpdateData(
            first_name=payload.first_name,
            last_name=payload.last_name,
            role=payload.role,
            department_id=payload.department_id if "department_id" in supplied else UNSET,
            unit_id=payload.unit_id if "unit_id" in supplied else UNSET,
            is_active=payload.is_active,
        ),
    )
    return service.serialize(user)


@router.delete("/{user_id}")
def deactivate_user(
    user_id: UUID,
    context: RequestUserContext = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _service(db, clock)
    return service.serialize(service.deactivate_user(context=context, user_id=user_id))
