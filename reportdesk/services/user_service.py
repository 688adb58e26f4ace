"""User directory reads and HR-managed role/scope assignment."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from reportdesk.core.auth import LOCK_ROLES, RequestUserContext
from reportdesk.core.clock import Clock
from reportdesk.core.errors import BadRequestError, ForbiddenError, NotFoundError
from reportdesk.models.entities import User, UserRole
from reportdesk.repositories.department_repository import DepartmentRepository
from reportdesk.repositories.user_repository import UserFilters, UserRepository

logger = logging.getLogger(__name__)

# Sentinel for "field not supplied", distinct from an explicit None that clears a scope.
UNSET = object()


@dataclass(slots=True)
class UserUpdateData:
    first_name: str | None = None
    last_name: str | None = None
    role: UserRole | None = None
    department_id: UUID | None | object = UNSET
    unit_id: UUID | None | object = UNSET
    is_active: bool | None = None

    @property
    def touches_assignment(self) -> bool:
        return (
            self.role is not None
            or self.department_id is not UNSET
            or self.unit_id is not UNSET
            or self.is_active is not None
        )


@dataclass(slots=True)
class UserPage:
    items: list[User]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class UserService:
    def __init__(self, db: Session, *, clock: Clock | None = None) -> None:
        self.db = db
        self.repo = UserRepository(db)
        self.departments = DepartmentRepository(db)
        self.clock = clock or Clock()

    @staticmethod
    def serialize(user: User) -> dict[str, object]:
        return {
            "id": str(user.id),
            "email": user.email,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "full_name": user.full_name,
            "role": user.role.value,
            "department_id": str(user.department_id) if user.department_id else None,
            "unit_id": str(user.unit_id) if user.unit_id else None,
            "is_active": user.is_active,
            "last_login_at": user.last_login_at.isoformat() if user.last_login_at else None,
            "created_at": user.created_at.isoformat(),
            "updated_at": user.updated_at.isoformat(),
        }

    def _get(self, user_id: UUID) -> User:
        user = self.repo.get(user_id)
        if user is None:
            raise NotFoundError("User not found.")
        return user

    # ---------- Reads ----------
    def list_users(
        self,
        *,
        context: RequestUserContext,
        filters: UserFilters,
        page: int = 1,
        limit: int = 10,
    ) -> UserPage:
        """HR/admin see the whole directory, HOD only their own department."""

        if not context.is_elevated:
            raise ForbiddenError("Access denied.")
        if context.role is UserRole.HOD:
            filters.department_id = context.department_id

        page = max(page, 1)
        limit = max(limit, 1)
        items, total = self.repo.list_users(filters, offset=(page - 1) * limit, limit=limit)
        return UserPage(items=items, total=total, page=page, limit=limit)

    def get_user(self, *, context: RequestUserContext, user_id: UUID) -> User:
        user = self._get(user_id)
        if context.role is UserRole.STAFF and user.id != context.user_id:
            raise ForbiddenError("Access denied.")
        return user

    # ---------- Mutations ----------
    def update_user(self, *, context: RequestUserContext, user_id: UUID, data: UserUpdateData) -> User:
        user = self._get(user_id)
        if user.id != context.user_id and context.role not in LOCK_ROLES:
            raise ForbiddenError("You can only edit your own profile.")
        if data.touches_assignment:
            self._apply_assignment(context, user, data)

        if data.first_name is not None:
            first_name = data.first_name.strip()
            if not first_name:
                raise BadRequestError("First name cannot be empty.")
            user.first_name = first_name
        if data.last_name is not None:
            user.last_name = data.last_name.strip()

        user.updated_at = self.clock.utcnow()
        self.db.commit()
        self.db.refresh(user)
        return user

    def deactivate_user(self, *, context: RequestUserContext, user_id: UUID) -> User:
        if context.role is not UserRole.ADMIN:
            raise ForbiddenError("Only admins can deactivate users.")
        user = self._get(user_id)
        if user.id == context.user_id:
            raise BadRequestError("You cannot deactivate your own account.")

        user.is_active = False
        user.updated_at = self.clock.utcnow()
        self.db.commit()
        self.db.refresh(user)
        logger.info("User %s deactivated by %s", user.id, context.user_id)
        return user

    def _apply_assignment(self, context: RequestUserContext, user: User, data: UserUpdateData) -> None:
        if context.role not in LOCK_ROLES:
            raise ForbiddenError("Only HR can change roles, departments, units or account status.")
        if data.role is UserRole.ADMIN and context.role is not UserRole.ADMIN:
            raise ForbiddenError("Only admins can assign the admin role.")
        if user.role is UserRole.ADMIN and context.role is not UserRole.ADMIN:
            raise ForbiddenError("Only admins can change an admin account.")
        if user.id == context.user_id and (data.role is not None or data.is_active is False):
            raise BadRequestError("You cannot change your own role or deactivate yourself.")

        department_id = user.department_id if data.department_id is UNSET else data.department_id
        unit_id = user.unit_id if data.unit_id is UNSET else data.unit_id
        if department_id is not None and self.departments.get(department_id) is None:
            raise NotFoundError("Department not found.")
        if unit_id is not None:
            unit = self.departments.get_unit(unit_id)
            if unit is None:
                raise NotFoundError("Unit not found.")
            if data.department_id is UNSET and data.unit_id is not UNSET:
                department_id = unit.department_id
            elif data.unit_id is UNSET and unit.department_id != department_id:
                # Department moved without a new unit; the old unit no longer applies.
                unit_id = None
            elif unit.department_id != department_id:
                raise BadRequestError("Unit does not belong to the selected department.")

        if data.role is not None:
            user.role = data.role
        user.department_id = department_id
        user.unit_id = unit_id
        if data.is_active is not None:
            user.is_active = data.is_active
        logger.info("User %s assignment changed by %s", user.id, context.user_id)
