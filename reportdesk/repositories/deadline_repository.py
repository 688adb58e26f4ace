"""Repository helpers for deadline rules."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from reportdesk.models.entities import Deadline, DeadlineType


class DeadlineRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, deadline_id: UUID) -> Deadline | None:
        return self.db.scalar(select(Deadline).where(Deadline.id == deadline_id))

    def list_rules(
        self,
        *,
        department_id: UUID | None = None,
        unit_id: UUID | None = None,
        deadline_type: DeadlineType | None = None,
        is_active: bool | None = None,
    ) -> list[Deadline]:
        conditions = []
        if department_id is not None:
            conditions.append(Deadline.department_id == department_id)
        if unit_id is not None:
            conditions.append(Deadline.unit_id == unit_id)
        if deadline_type is not None:
            conditions.append(Deadline.type == deadline_type)
        if is_active is not None:
            conditions.append(Deadline.is_active.is_(is_active))
        return list(
            self.db.scalars(
                select(Deadline).where(and_(True, *conditions)).order_by(Deadline.created_at.desc())
            ).all()
        )

    def add(self, deadline: Deadline) -> Deadline:
        self.db.add(deadline)
        self.db.flush()
        return deadline

    def delete(self, deadline: Deadline) -> None:
        self.db.delete(deadline)
        self.db.flush()
