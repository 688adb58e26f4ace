"""Deadline rule management and scope resolution."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from sqlalchemy.orm import Session

from reportdesk.core.auth import LOCK_ROLES, RequestUserContext
from reportdesk.core.clock import Clock, to_storage
from reportdesk.core.errors import BadRequestError, ForbiddenError, NotFoundError
from reportdesk.models.entities import Deadline, DeadlineType, ReportType, User
from reportdesk.repositories.deadline_repository import DeadlineRepository
from reportdesk.services.deadline_evaluator import next_deadline, parse_deadline_time

REPORT_TYPE_TO_DEADLINE_TYPE: dict[ReportType, DeadlineType] = {
    ReportType.DAILY: DeadlineType.DAILY,
    ReportType.WEEKLY: DeadlineType.WEEKLY,
    ReportType.MONTHLY: DeadlineType.MONTHLY,
}


@dataclass(slots=True)
class DeadlineCreateData:
    type: DeadlineType
    deadline_time: str
    department_id: UUID | None = None
    unit_id: UUID | None = None
    day_of_week: int | None = None
    day_of_month: int | None = None


@dataclass(slots=True)
class DeadlineUpdateData:
    deadline_time: str | None = None
    day_of_week: int | None = None
    day_of_month: int | None = None
    is_active: bool | None = None


def _validate_rule(
    *,
    deadline_type: DeadlineType,
    deadline_time: str,
    day_of_week: int | None,
    day_of_month: int | None,
) -> None:
    parse_deadline_time(deadline_time)
    if deadline_type is DeadlineType.WEEKLY:
        if day_of_week is None or not 0 <= day_of_week <= 6:
            raise BadRequestError("Weekly deadlines require day_of_week between 0 (Sunday) and 6.")
    elif day_of_week is not None:
        raise BadRequestError("day_of_week is only allowed for weekly deadlines.")

    if deadline_type is DeadlineType.MONTHLY:
        if day_of_month is None or not 1 <= day_of_month <= 31:
            raise BadRequestError("Monthly deadlines require day_of_month between 1 and 31.")
    elif day_of_month is not None:
        raise BadRequestError("day_of_month is only allowed for monthly deadlines.")


def _scope_rank(rule: Deadline, user: User | RequestUserContext) -> int | None:
    """0 for a unit match, 1 for a department match, 2 for global, None if out of scope."""

    if rule.unit_id is not None:
        return 0 if rule.unit_id == user.unit_id else None
    if rule.department_id is not None:
        return 1 if rule.department_id == user.department_id else None
    return 2


class DeadlineService:
    def __init__(self, db: Session, *, clock: Clock | None = None) -> None:
        self.db = db
        self.repo = DeadlineRepository(db)
        self.clock = clock or Clock()

    @staticmethod
    def serialize(rule: Deadline) -> dict[str, object]:
        return {
            "id": str(rule.id),
            "department_id": str(rule.department_id) if rule.department_id else None,
            "unit_id": str(rule.unit_id) if rule.unit_id else None,
            "type": rule.type.value,
            "deadline_time": rule.deadline_time,
            "day_of_week": rule.day_of_week,
            "day_of_month": rule.day_of_month,
            "is_active": rule.is_active,
            "created_at": rule.created_at.isoformat(),
        }

    @staticmethod
    def _ensure_can_manage(context: RequestUserContext) -> None:
        if context.role not in LOCK_ROLES:
            raise ForbiddenError("Only HR can manage deadlines.")

    def _get(self, deadline_id: UUID) -> Deadline:
        rule = self.repo.get(deadline_id)
        if rule is None:
            raise NotFoundError("Deadline not found.")
        return rule

    # ---------- CRUD ----------
    def list_deadlines(
        self,
        *,
        context: RequestUserContext,
        department_id: UUID | None = None,
        unit_id: UUID | None = None,
        deadline_type: DeadlineType | None = None,
        is_active: bool | None = None,
    ) -> list[Deadline]:
        self._ensure_can_manage(context)
        return self.repo.list_rules(
            department_id=department_id,
            unit_id=unit_id,
            deadline_type=deadline_type,
            is_active=is_active,
        )

    def get_deadline(self, *, context: RequestUserContext, deadline_id: UUID) -> Deadline:
        self._ensure_can_manage(context)
        return self._get(deadline_id)

    def create_deadline(self, *, context: RequestUserContext, data: DeadlineCreateData) -> Deadline:
        self._ensure_can_manage(context)
        _validate_rule(
            deadline_type=data.type,
            deadline_time=data.deadline_time,
            day_of_week=data.day_of_week,
            day_of_month=data.day_of_month,
        )
        rule = Deadline(
            department_id=data.department_id,
            unit_id=data.unit_id,
            type=data.type,
            deadline_time=data.deadline_time.strip(),
            day_of_week=data.day_of_week,
            day_of_month=data.day_of_month,
            is_active=True,
            created_at=self.clock.utcnow(),
        )
        self.repo.add(rule)
        self.db.commit()
        self.db.refresh(rule)
        return rule

    def update_deadline(self, *, context: RequestUserContext, deadline_id: UUID, data: DeadlineUpdateData) -> Deadline:
        self._ensure_can_manage(context)
        rule = self._get(deadline_id)

        deadline_time = data.deadline_time if data.deadline_time is not None else rule.deadline_time
        day_of_week = data.day_of_week if data.day_of_week is not None else rule.day_of_week
        day_of_month = data.day_of_month if data.day_of_month is not None else rule.day_of_month
        _validate_rule(
            deadline_type=rule.type,
            deadline_time=deadline_time,
            day_of_week=day_of_week,
            day_of_month=day_of_month,
        )

        rule.deadline_time = deadline_time.strip()
        rule.day_of_week = day_of_week
        rule.day_of_month = day_of_month
        if data.is_active is not None:
            rule.is_active = data.is_active
        self.db.commit()
        self.db.refresh(rule)
        return rule

    def delete_deadline(self, *, context: RequestUserContext, deadline_id: UUID) -> None:
        self._ensure_can_manage(context)
        self.repo.delete(self._get(deadline_id))
        self.db.commit()

    def next_occurrence(self, *, context: RequestUserContext, deadline_id: UUID) -> datetime:
        rule = self.get_deadline(context=context, deadline_id=deadline_id)
        return next_deadline(rule, self.clock.now())

    # ---------- Resolution ----------
    def resolve_for(self, user: User | RequestUserContext, report_type: ReportType) -> Deadline | None:
        """Narrowest active rule for the user's scope: unit, then department, then global."""

        deadline_type = REPORT_TYPE_TO_DEADLINE_TYPE.get(report_type)
        if deadline_type is None:
            return None

        ranked: list[tuple[int, datetime, Deadline]] = []
        for rule in self.repo.list_rules(deadline_type=deadline_type, is_active=True):
            rank = _scope_rank(rule, user)
            if rank is not None:
                ranked.append((rank, rule.created_at, rule))
        if not ranked:
            return None

        # Newest rule wins within the same scope level.
        ranked.sort(key=lambda item: (item[0], -item[1].timestamp()))
        return ranked[0][2]

    def deadline_for_report(
        self, user: User | RequestUserContext, report_type: ReportType, anchor: date
    ) -> datetime | None:
        """Storage-form deadline for a report anchored on ``anchor``, if any rule applies."""

        rule = self.resolve_for(user, report_type)
        if rule is None:
            return None
        return to_storage(next_deadline(rule, self.clock.start_of_day(anchor)))
