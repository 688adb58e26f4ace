"""Notification emission and recipient-side notification operations.

Emitters add rows to the caller's session without committing, so a
notification is persisted in the same transaction as the mutation that
triggered it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from reportdesk.core.clock import Clock
from reportdesk.core.errors import NotFoundError
from reportdesk.core.periods import format_display_date
from reportdesk.models.entities import Notification, NotificationType, Report
from reportdesk.repositories.notification_repository import NotificationRepository


@dataclass(slots=True)
class NotificationPage:
    items: list[Notification]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class NotificationService:
    def __init__(self, db: Session, *, clock: Clock | None = None) -> None:
        self.db = db
        self.repo = NotificationRepository(db)
        self.clock = clock or Clock()

    @staticmethod
    def serialize(notification: Notification) -> dict[str, object]:
        return {
            "id": str(notification.id),
            "recipient_id": str(notification.recipient_id),
            "type": notification.type.value,
            "title": notification.title,
            "message": notification.message,
            "is_read": notification.is_read,
            "related_report_id": str(notification.related_report_id) if notification.related_report_id else None,
            "created_at": notification.created_at.isoformat(),
        }

    # ---------- Emission ----------
    def create_notification(
        self,
        *,
        recipient_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        related_report_id: UUID | None = None,
    ) -> Notification:
        return self.repo.add(
            Notification(
                recipient_id=recipient_id,
                type=type,
                title=title,
                message=message,
                is_read=False,
                related_report_id=related_report_id,
                created_at=self.clock.utcnow(),
            )
        )

    def notify_feedback_added(self, report: Report) -> Notification:
        return self.create_notification(
            recipient_id=report.owner_id,
            type=NotificationType.FEEDBACK,
            title="New Feedback",
            message=f"You have received new feedback on your report for {report.report_date.isoformat()}.",
            related_report_id=report.id,
        )

    def notify_report_locked(self, report: Report, *, automatic: bool = False) -> Notification:
        suffix = "because its deadline has passed" if automatic else "by HR"
        message = f"Your report for {report.report_date.isoformat()} has been locked {suffix}."
        return self.create_notification(
            recipient_id=report.owner_id,
            type=NotificationType.LOCK,
            title="Report Locked",
            message=message,
            related_report_id=report.id,
        )

    def notify_report_unlocked(self, report: Report) -> Notification:
        return self.create_notification(
            recipient_id=report.owner_id,
            type=NotificationType.UNLOCK,
            title="Report Unlocked",
            message=f"Your report for {report.report_date.isoformat()} has been unlocked.",
            related_report_id=report.id,
        )

    def notify_daily_reminder(self, recipient_id: UUID) -> Notification:
        return self.create_notification(
            recipient_id=recipient_id,
            type=NotificationType.REMINDER,
            title="Daily Report Reminder",
            message=f"Please submit your daily report for {format_display_date(self.clock.today())}.",
        )

    # ---------- Recipient operations ----------
    def list_notifications(self, *, recipient_id: UUID, page: int = 1, limit: int = 20) -> NotificationPage:
        page = max(page, 1)
        limit = max(limit, 1)
        items, total = self.repo.list_for_recipient(recipient_id, offset=(page - 1) * limit, limit=limit)
        return NotificationPage(items=items, total=total, page=page, limit=limit)

    def unread_count(self, *, recipient_id: UUID) -> int:
        return self.repo.count_unread(recipient_id)

    def _get_owned(self, notification_id: UUID, recipient_id: UUID) -> Notification:
        notification = self.repo.get_for_recipient(notification_id, recipient_id)
        if notification is None:
            raise NotFoundError("Notification not found.")
        return notification

    def mark_as_read(self, *, notification_id: UUID, recipient_id: UUID) -> Notification:
        notification = self._get_owned(notification_id, recipient_id)
        notification.is_read = True
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def mark_all_as_read(self, *, recipient_id: UUID) -> int:
        updated = self.repo.mark_all_read(recipient_id)
        self.db.commit()
        return updated

    def delete_notification(self, *, notification_id: UUID, recipient_id: UUID) -> None:
        notification = self._get_owned(notification_id, recipient_id)
        self.repo.delete(notification)
        self.db.commit()
