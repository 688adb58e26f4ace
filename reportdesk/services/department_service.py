"""Department and unit management."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from reportdesk.core.auth import LOCK_ROLES, RequestUserContext
from reportdesk.core.clock import Clock
from reportdesk.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from reportdesk.models.entities import Department, Unit
from reportdesk.repositories.deadline_repository import DeadlineRepository
from reportdesk.repositories.department_repository import DepartmentRepository
from reportdesk.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DepartmentData:
    name: str | None = None
    description: str | None = None


class DepartmentService:
    def __init__(self, db: Session, *, clock: Clock | None = None) -> None:
        self.db = db
        self.repo = DepartmentRepository(db)
        self.clock = clock or Clock()

    @staticmethod
    def serialize_unit(unit: Unit) -> dict[str, object]:
        return {
            "id": str(unit.id),
            "department_id": str(unit.department_id),
            "name": unit.name,
            "created_at": unit.created_at.isoformat(),
        }

    @classmethod
    def serialize(cls, department: Department, units: list[Unit] | None = None) -> dict[str, object]:
        payload: dict[str, object] = {
            "id": str(department.id),
            "name": department.name,
            "description": department.description,
            "created_at": department.created_at.isoformat(),
        }
        if units is not None:
            payload["units"] = [{"id": str(unit.id), "name": unit.name} for unit in units]
        return payload

    @staticmethod
    def _ensure_can_manage(context: RequestUserContext) -> None:
        if context.role not in LOCK_ROLES:
            raise ForbiddenError("Only HR can manage departments.")

    def _get(self, department_id: UUID) -> Department:
        department = self.repo.get(department_id)
        if department is None:
            raise NotFoundError("Department not found.")
        return department

    def _ensure_name_free(self, name: str, *, current: Department | None = None) -> None:
        existing = self.repo.get_by_name(name)
        if existing is not None and existing is not current:
            raise ConflictError(f"Department '{name}' already exists.")

    # ---------- Reads ----------
    def list_departments(self) -> list[tuple[Department, list[Unit]]]:
        units_by_department: dict[UUID, list[Unit]] = {}
        for unit in self.repo.list_units():
            units_by_department.setdefault(unit.department_id, []).append(unit)
        return [
            (department, units_by_department.get(department.id, []))
            for department in self.repo.list_departments()
        ]

    def get_department(self, department_id: UUID) -> tuple[Department, list[Unit]]:
        department = self._get(department_id)
        return department, self.repo.list_units(department.id)

    def list_units(self, department_id: UUID) -> list[Unit]:
        return self.repo.list_units(self._get(department_id).id)

    # ---------- Mutations ----------
    def create_department(self, *, context: RequestUserContext, data: DepartmentData) -> Department:
        self._ensure_can_manage(context)
        name = (data.name or "").strip()
        if not name:
            raise BadRequestError("Department name is required.")
        self._ensure_name_free(name)

        department = self.repo.add(
            Department(
                name=name,
                description=(data.description or "").strip() or None,
                created_at=self.clock.utcnow(),
            )
        )
        self.db.commit()
        self.db.refresh(department)
        logger.info("Department %s created by %s", department.id, context.user_id)
        return department

    def update_department(
        self,
        *,
        context: RequestUserContext,
        department_id: UUID,
        data: DepartmentData,
    ) -> Department:
        self._ensure_can_manage(context)
        department = self._get(department_id)
        if data.name is not None:
            name = data.name.strip()
            if not name:
                raise BadRequestError("Department name cannot be empty.")
            self._ensure_name_free(name, current=department)
            department.name = name
        if data.description is not None:
            department.description = data.description.strip() or None
        self.db.commit()
        self.db.refresh(department)
        return department

    def delete_department(self, *, context: RequestUserContext, department_id: UUID) -> None:
        self._ensure_can_manage(context)
        department = self._get(department_id)
        if UserRepository(self.db).count_in_department(department.id):
            raise ConflictError("Department still has assigned users.")
        if DeadlineRepository(self.db).list_rules(department_id=department.id):
            raise ConflictError("Department still has deadline rules.")
        for unit in self.repo.list_units(department.id):
            if DeadlineRepository(self.db).list_rules(unit_id=unit.id):
                raise ConflictError(f"Unit '{unit.name}' still has deadline rules.")

        self.repo.delete(department)
        self.db.commit()
        logger.info("Department %s deleted by %s", department_id, context.user_id)

    def create_unit(self, *, context: RequestUserContext, department_id: UUID, name: str) -> Unit:
        self._ensure_can_manage(context)
        department = self._get(department_id)
        name = name.strip()
        if not name:
            raise BadRequestError("Unit name is required.")
        if self.repo.get_unit_by_name(department.id, name) is not None:
            raise ConflictError(f"Unit '{name}' already exists in {department.name}.")

        unit = self.repo.add_unit(Unit(department_id=department.id, name=name, created_at=self.clock.utcnow()))
        self.db.commit()
        self.db.refresh(unit)
        return unit
