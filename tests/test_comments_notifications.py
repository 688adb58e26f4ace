from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

import pytest
from sqlalchemy.orm import Session

from conftest import context_for
from reportdesk.core.clock import FrozenClock
from reportdesk.core.errors import BadRequestError, ForbiddenError, NotFoundError
from reportdesk.models.entities import NotificationType, ReportType, UserRole
from reportdesk.services.comment_service import CommentService
from reportdesk.services.notification_service import NotificationService
from reportdesk.services.report_lifecycle import ReportCreateData, ReportLifecycleService


@pytest.fixture()
def notifier(db_session: Session, clock: FrozenClock) -> NotificationService:
    return NotificationService(db_session, clock=clock)


@pytest.fixture()
def comments(db_session: Session, clock: FrozenClock, notifier: NotificationService) -> CommentService:
    return CommentService(db_session, clock=clock, notifier=notifier)


@pytest.fixture()
def owner(make_user):
    return make_user("alice")


@pytest.fixture()
def report(db_session: Session, clock: FrozenClock, owner):
    service = ReportLifecycleService(db_session, clock=clock)
    return service.create_report(
        context=context_for(owner),
        data=ReportCreateData(type=ReportType.DAILY, report_date=date(2024, 3, 4)),
    )


def _tick(clock: FrozenClock, minute: int) -> None:
    clock.set(datetime(2024, 3, 4, 10, minute, tzinfo=timezone.utc))


def test_threads_group_replies_under_top_level_comments(
    comments: CommentService, clock: FrozenClock, owner, report, make_user
) -> None:
    hr = context_for(make_user("hr", UserRole.HR))
    alice = context_for(owner)

    _tick(clock, 0)
    first = comments.create_comment(context=hr, report_id=report.id, content="  Please add detail.  ")
    _tick(clock, 1)
    second = comments.create_comment(context=hr, report_id=report.id, content="Also the totals.")
    _tick(clock, 2)
    reply = comments.create_comment(context=alice, report_id=report.id, content="Done.", parent_id=first.id)

    threads = comments.list_threads(context=alice, report_id=report.id)

    assert [thread.comment.id for thread in threads] == [first.id, second.id]
    assert [item.id for item in threads[0].replies] == [reply.id]
    assert threads[1].replies == []
    assert first.content == "Please add detail."

    payload = CommentService.serialize_thread(threads[0])
    assert payload["replies"][0]["parent_id"] == str(first.id)


def test_comment_validation(comments: CommentService, owner, report, make_user, clock: FrozenClock) -> None:
    alice = context_for(owner)
    top = comments.create_comment(context=alice, report_id=report.id, content="note")
    reply = comments.create_comment(context=alice, report_id=report.id, content="reply", parent_id=top.id)

    with pytest.raises(BadRequestError):
        comments.create_comment(context=alice, report_id=report.id, content="   ")
    with pytest.raises(BadRequestError, match="nested"):
        comments.create_comment(context=alice, report_id=report.id, content="deeper", parent_id=reply.id)
    with pytest.raises(BadRequestError):
        comments.create_comment(context=alice, report_id=report.id, content="x", parent_id=uuid.uuid4())

    other_report = ReportLifecycleService(comments.db, clock=clock).create_report(
        context=alice,
        data=ReportCreateData(type=ReportType.DAILY, report_date=date(2024, 3, 5)),
    )
    with pytest.raises(BadRequestError, match="does not belong"):
        comments.create_comment(context=alice, report_id=other_report.id, content="x", parent_id=top.id)


def test_staff_cannot_comment_on_other_reports(comments: CommentService, report, make_user) -> None:
    bob = context_for(make_user("bob"))

    with pytest.raises(ForbiddenError):
        comments.create_comment(context=bob, report_id=report.id, content="hello")
    with pytest.raises(NotFoundError):
        comments.list_threads(context=bob, report_id=uuid.uuid4())


def test_feedback_notification_only_for_other_authors(
    comments: CommentService, notifier: NotificationService, owner, report, make_user
) -> None:
    comments.create_comment(context=context_for(owner), report_id=report.id, content="self note")
    assert notifier.unread_count(recipient_id=owner.id) == 0

    hod = make_user("hod", UserRole.HOD)
    comments.create_comment(context=context_for(hod), report_id=report.id, content="Looks good")

    page = notifier.list_notifications(recipient_id=owner.id)
    assert page.total == 1
    notice = page.items[0]
    assert notice.type is NotificationType.FEEDBACK
    assert notice.related_report_id == report.id
    assert "2024-03-04" in notice.message


def test_comment_edit_and_delete_permissions(
    comments: CommentService, clock: FrozenClock, owner, report, make_user
) -> None:
    hod = context_for(make_user("hod", UserRole.HOD))
    hr = context_for(make_user("hr", UserRole.HR))
    alice = context_for(owner)
    comment = comments.create_comment(context=hod, report_id=report.id, content="Draft feedback")

    with pytest.raises(ForbiddenError):
        comments.update_comment(context=alice, comment_id=comment.id, content="hijack")

    _tick(clock, 30)
    edited = comments.update_comment(context=hod, comment_id=comment.id, content="Final feedback")
    assert edited.content == "Final feedback"
    assert edited.updated_at == datetime(2024, 3, 4, 10, 30)

    reply = comments.create_comment(context=alice, report_id=report.id, content="Thanks", parent_id=comment.id)
    with pytest.raises(ForbiddenError):
        comments.delete_comment(context=alice, comment_id=comment.id)

    comments.delete_comment(context=hr, comment_id=comment.id)
    assert comments.list_threads(context=alice, report_id=report.id) == []
    with pytest.raises(NotFoundError):
        comments.update_comment(context=alice, comment_id=reply.id, content="gone")


def test_recipient_notification_operations(
    db_session: Session, notifier: NotificationService, clock: FrozenClock, owner, make_user
) -> None:
    bob = make_user("bob")
    for minute in range(3):
        _tick(clock, minute)
        notifier.notify_daily_reminder(owner.id)
    notifier.notify_daily_reminder(bob.id)
    db_session.commit()

    page = notifier.list_notifications(recipient_id=owner.id, limit=2)
    assert page.total == 3
    assert page.total_pages == 2
    assert [item.created_at.minute for item in page.items] == [2, 1]
    assert "March 4, 2024" in page.items[0].message

    newest = page.items[0]
    assert notifier.mark_as_read(notification_id=newest.id, recipient_id=owner.id).is_read is True
    assert notifier.unread_count(recipient_id=owner.id) == 2

    with pytest.raises(NotFoundError):
        notifier.mark_as_read(notification_id=newest.id, recipient_id=bob.id)
    with pytest.raises(NotFoundError):
        notifier.delete_notification(notification_id=newest.id, recipient_id=bob.id)

    assert notifier.mark_all_as_read(recipient_id=owner.id) == 2
    assert notifier.unread_count(recipient_id=owner.id) == 0
    assert notifier.unread_count(recipient_id=bob.id) == 1

    notifier.delete_notification(notification_id=newest.id, recipient_id=owner.id)
    assert notifier.list_notifications(recipient_id=owner.id).total == 2
