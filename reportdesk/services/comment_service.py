"""Threaded feedback on reports, one level of nesting."""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.orm import Session

from reportdesk.core.auth import LOCK_ROLES, RequestUserContext
from reportdesk.core.clock import Clock
from reportdesk.core.errors import BadRequestError, ForbiddenError, NotFoundError
from reportdesk.models.entities import Comment, Report, UserRole
from reportdesk.repositories.report_repository import ReportRepository
from reportdesk.services.notification_service import NotificationService


@dataclass(slots=True)
class CommentThread:
    comment: Comment
    replies: list[Comment] = field(default_factory=list)


class CommentService:
    def __init__(
        self,
        db: Session,
        *,
        clock: Clock | None = None,
        notifier: NotificationService | None = None,
    ) -> None:
        self.db = db
        self.repo = ReportRepository(db)
        self.clock = clock or Clock()
        self.notifier = notifier or NotificationService(db, clock=self.clock)

    @staticmethod
    def serialize(comment: Comment) -> dict[str, object]:
        return {
            "id": str(comment.id),
            "report_id": str(comment.report_id),
            "author_id": str(comment.author_id),
            "parent_id": str(comment.parent_id) if comment.parent_id else None,
            "content": comment.content,
            "created_at": comment.created_at.isoformat(),
            "updated_at": comment.updated_at.isoformat(),
        }

    @classmethod
    def serialize_thread(cls, thread: CommentThread) -> dict[str, object]:
        payload = cls.serialize(thread.comment)
        payload["replies"] = [cls.serialize(reply) for reply in thread.replies]
        return payload

    def _get_visible_report(self, context: RequestUserContext, report_id: UUID) -> Report:
        report = self.repo.get_report(report_id)
        if report is None:
            raise NotFoundError("Report not found.")
        if context.role is UserRole.STAFF and report.owner_id != context.user_id:
            raise ForbiddenError("Access denied.")
        return report

    def _get_comment(self, comment_id: UUID) -> Comment:
        comment = self.repo.get_comment(comment_id)
        if comment is None:
            raise NotFoundError("Comment not found.")
        return comment

    @staticmethod
    def _ensure_can_modify(context: RequestUserContext, comment: Comment) -> None:
        if comment.author_id != context.user_id and context.role not in LOCK_ROLES:
            raise ForbiddenError("You can only modify your own comments.")

    def list_threads(self, *, context: RequestUserContext, report_id: UUID) -> list[CommentThread]:
        report = self._get_visible_report(context, report_id)
        threads: dict[UUID, CommentThread] = {}
        orphans: list[Comment] = []
        for comment in self.repo.list_comments(report.id):
            if comment.parent_id is None:
                threads[comment.id] = CommentThread(comment=comment)
            else:
                orphans.append(comment)
        for reply in orphans:
            thread = threads.get(reply.parent_id)
            if thread is not None:
                thread.replies.append(reply)
        return list(threads.values())

    def create_comment(
        self,
        *,
        context: RequestUserContext,
        report_id: UUID,
        content: str,
        parent_id: UUID | None = None,
    ) -> Comment:
        report = self._get_visible_report(context, report_id)
        text = content.strip()
        if not text:
            raise BadRequestError("Comment content must not be empty.")

        if parent_id is not None:
            parent = self.repo.get_comment(parent_id)
            if parent is None or parent.report_id != report.id:
                raise BadRequestError("Parent comment does not belong to this report.")
            if parent.parent_id is not None:
                raise BadRequestError("Replies cannot be nested more than one level.")

        now = self.clock.utcnow()
        comment = self.repo.add_comment(
            Comment(
                report_id=report.id,
                author_id=context.user_id,
                parent_id=parent_id,
                content=text,
                created_at=now,
                updated_at=now,
            )
        )
        if report.owner_id != context.user_id:
            self.notifier.notify_feedback_added(report)
        self.db.commit()
        self.db.refresh(comment)
        return comment

    def update_comment(self, *, context: RequestUserContext, comment_id: UUID, content: str) -> Comment:
        comment = self._get_comment(comment_id)
        self._ensure_can_modify(context, comment)
        text = content.strip()
        if not text:
            raise BadRequestError("Comment content must not be empty.")
        comment.content = text
        comment.updated_at = self.clock.utcnow()
        self.db.commit()
        self.db.refresh(comment)
        return comment

    def delete_comment(self, *, context: RequestUserContext, comment_id: UUID) -> None:
        comment = self._get_comment(comment_id)
        self._ensure_can_modify(context, comment)
        self.repo.delete_comment(comment)
        self.db.commit()
