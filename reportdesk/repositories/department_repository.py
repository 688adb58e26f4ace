"""Repository helpers for departments and their units."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import and_, delete, func, select
from sqlalchemy.orm import Session

from reportdesk.models.entities import Department, Unit


class DepartmentRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Departments ----------
    def get(self, department_id: UUID) -> Department | None:
        return self.db.scalar(select(Department).where(Department.id == department_id))

    def get_by_name(self, name: str) -> Department | None:
        return self.db.scalar(select(Department).where(func.lower(Department.name) == name.lower()))

    def list_departments(self) -> list[Department]:
        return list(self.db.scalars(select(Department).order_by(Department.name.asc())).all())

    def add(self, department: Department) -> Department:
        self.db.add(department)
        self.db.flush()
        return department

    def delete(self, department: Department) -> None:
        self.db.execute(delete(Unit).where(Unit.department_id == department.id))
        self.db.delete(department)
        self.db.flush()

    # ---------- Units ----------
    def get_unit(self, unit_id: UUID) -> Unit | None:
        return self.db.scalar(select(Unit).where(Unit.id == unit_id))

    def get_unit_by_name(self, department_id: UUID, name: str) -> Unit | None:
        return self.db.scalar(
            select(Unit).where(and_(Unit.department_id == department_id, func.lower(Unit.name) == name.lower()))
        )

    def list_units(self, department_id: UUID | None = None) -> list[Unit]:
        stmt = select(Unit).order_by(Unit.name.asc())
        if department_id is not None:
            stmt = stmt.where(Unit.department_id == department_id)
        return list(self.db.scalars(stmt).all())

    def add_unit(self, unit: Unit) -> Unit:
        self.db.add(unit)
        self.db.flush()
        return unit
