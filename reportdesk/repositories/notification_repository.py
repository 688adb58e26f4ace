"""Repository helpers for notifications."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import and_, func, select, update
from sqlalchemy.orm import Session

from reportdesk.models.entities import Notification


class NotificationRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def add(self, notification: Notification) -> Notification:
        self.db.add(notification)
        self.db.flush()
        return notification

    def get_for_recipient(self, notification_id: UUID, recipient_id: UUID) -> Notification | None:
        return self.db.scalar(
            select(Notification).where(
                and_(Notification.id == notification_id, Notification.recipient_id == recipient_id)
            )
        )

    def list_for_recipient(self, recipient_id: UUID, *, offset: int, limit: int) -> tuple[list[Notification], int]:
        total = (
            self.db.scalar(
                select(func.count()).select_from(Notification).where(Notification.recipient_id == recipient_id)
            )
            or 0
        )
        rows = self.db.scalars(
            select(Notification)
            .where(Notification.recipient_id == recipient_id)
            .order_by(Notification.created_at.desc())
            .offset(offset)
            .limit(limit)
        ).all()
        return list(rows), int(total)

    def count_unread(self, recipient_id: UUID) -> int:
        return int(
            self.db.scalar(
                select(func.count())
                .select_from(Notification)
                .where(and_(Notification.recipient_id == recipient_id, Notification.is_read.is_(False)))
            )
            or 0
        )

    def mark_all_read(self, recipient_id: UUID) -> int:
        result = self.db.execute(
            update(Notification)
            .where(and_(Notification.recipient_id == recipient_id, Notification.is_read.is_(False)))
            .values(is_read=True)
        )
        return int(result.rowcount or 0)

    def delete(self, notification: Notification) -> None:
        self.db.delete(notification)
        self.db.flush()
