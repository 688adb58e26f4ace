"""Repository helpers for users and organisational scope."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from reportdesk.models.entities import User, UserRole


@dataclass(slots=True)
class UserFilters:
    role: UserRole | None = None
    department_id: UUID | None = None
    unit_id: UUID | None = None
    is_active: bool | None = None
    search: str | None = None


class UserRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, user_id: UUID) -> User | None:
        return self.db.scalar(select(User).where(User.id == user_id))

    def get_by_email(self, email: str) -> User | None:
        return self.db.scalar(select(User).where(User.email == email))

    def list_active_by_role(self, role: UserRole) -> list[User]:
        return list(
            self.db.scalars(
                select(User)
                .where(and_(User.role == role, User.is_active.is_(True)))
                .order_by(User.last_name.asc(), User.first_name.asc())
            ).all()
        )

    def list_users(self, filters: UserFilters, *, offset: int, limit: int) -> tuple[list[User], int]:
        conditions = []
        if filters.role is not None:
            conditions.append(User.role == filters.role)
        if filters.department_id is not None:
            conditions.append(User.department_id == filters.department_id)
        if filters.unit_id is not None:
            conditions.append(User.unit_id == filters.unit_id)
        if filters.is_active is not None:
            conditions.append(User.is_active.is_(filters.is_active))
        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            conditions.append(
                or_(User.first_name.ilike(pattern), User.last_name.ilike(pattern), User.email.ilike(pattern))
            )

        total = self.db.scalar(select(func.count()).select_from(User).where(and_(True, *conditions))) or 0
        rows = self.db.scalars(
            select(User)
            .where(and_(True, *conditions))
            .order_by(User.created_at.desc(), User.email.asc())
            .offset(offset)
            .limit(limit)
        ).all()
        return list(rows), int(total)

    def count_in_department(self, department_id: UUID) -> int:
        return int(
            self.db.scalar(select(func.count()).select_from(User).where(User.department_id == department_id)) or 0
        )

    def add(self, user: User) -> User:
        self.db.add(user)
        self.db.flush()
        return user
