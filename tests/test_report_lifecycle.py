from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from conftest import context_for
from reportdesk.core.clock import FrozenClock
from reportdesk.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ReportLockedError,
)
from reportdesk.models.entities import (
    Deadline,
    DeadlineType,
    Notification,
    NotificationType,
    Report,
    ReportStatus,
    ReportType,
    ReportVersion,
    UserRole,
)
from reportdesk.repositories.report_repository import ReportFilters
from reportdesk.services.aggregator import ReportAggregator
from reportdesk.services.report_lifecycle import (
    ReportCreateData,
    ReportLifecycleService,
    ReportUpdateData,
    default_report_title,
)

MONDAY = date(2024, 3, 4)


def _doc(text: str) -> dict:
    return {"type": "doc", "content": [{"type": "paragraph", "content": [{"type": "text", "text": text}]}]}


def _create_daily(service: ReportLifecycleService, owner, day: date = MONDAY, text: str = "worked") -> Report:
    return service.create_report(
        context=context_for(owner),
        data=ReportCreateData(type=ReportType.DAILY, report_date=day, content=_doc(text)),
    )


def _assert_lock_invariant(report: Report) -> None:
    if report.is_locked:
        assert report.status is ReportStatus.LOCKED
        assert report.locked_by_id is not None
        assert report.locked_at is not None
    else:
        assert report.status is not ReportStatus.LOCKED
        assert report.locked_by_id is None
        assert report.locked_at is None


def _count(db: Session, model, *conditions) -> int:
    return db.scalar(select(func.count()).select_from(model).where(*conditions))


@pytest.fixture()
def service(db_session: Session, clock: FrozenClock) -> ReportLifecycleService:
    return ReportLifecycleService(db_session, clock=clock)


def test_create_daily_report_defaults(service: ReportLifecycleService, make_user) -> None:
    owner = make_user("alice")

    report = _create_daily(service, owner)

    assert report.status is ReportStatus.DRAFT
    assert report.owner_id == owner.id
    assert report.title == "Daily Report - March 4, 2024"
    assert report.year == 2024
    assert report.week_number is None
    assert report.deadline is None
    _assert_lock_invariant(report)


def test_second_daily_report_for_same_date_conflicts(service: ReportLifecycleService, make_user) -> None:
    owner = make_user("alice")
    _create_daily(service, owner)

    with pytest.raises(ConflictError, match="already exists"):
        _create_daily(service, owner)

    other = make_user("bob")
    assert _create_daily(service, other).owner_id == other.id
    assert _create_daily(service, owner, day=MONDAY + timedelta(days=1)).report_date == date(2024, 3, 5)


def test_weekly_and_monthly_reports_derive_period_fields(service: ReportLifecycleService, make_user) -> None:
    owner = make_user("alice")
    context = context_for(owner)

    weekly = service.create_report(context=context, data=ReportCreateData(type=ReportType.WEEKLY, report_date=MONDAY))
    monthly = service.create_report(
        context=context, data=ReportCreateData(type=ReportType.MONTHLY, report_date=MONDAY)
    )

    assert weekly.week_number == 10
    assert weekly.title == "Weekly Report - Mar 4 - Mar 10, 2024"
    assert monthly.month == 3
    assert monthly.title == "Monthly Report - March 2024"
    assert default_report_title(ReportType.ANNUAL, MONDAY) == "Annual Report - 2024"


def test_create_resolves_narrowest_deadline(
    db_session: Session, service: ReportLifecycleService, make_user, department, unit
) -> None:
    owner = make_user("alice", department_id=department.id, unit_id=unit.id)
    created = datetime(2024, 1, 1)
    db_session.add_all(
        [
            Deadline(type=DeadlineType.DAILY, deadline_time="20:00", is_active=True, created_at=created),
            Deadline(
                department_id=department.id,
                type=DeadlineType.DAILY,
                deadline_time="18:00",
                is_active=True,
                created_at=created,
            ),
            Deadline(
                department_id=department.id,
                unit_id=unit.id,
                type=DeadlineType.DAILY,
                deadline_time="17:00",
                is_active=True,
                created_at=created,
            ),
        ]
    )
    db_session.commit()

    report = _create_daily(service, owner)

    assert report.deadline == datetime(2024, 3, 4, 17, 0)


def test_locked_report_rejects_edits_for_every_role(
    service: ReportLifecycleService, make_user
) -> None:
    owner = make_user("alice")
    hr = make_user("hr", UserRole.HR)
    editors = [owner, hr, make_user("hod", UserRole.HOD), make_user("admin", UserRole.ADMIN)]
    report = _create_daily(service, owner)
    service.lock_report(context=context_for(hr), report_id=report.id)

    for editor in editors:
        with pytest.raises(ReportLockedError, match="locked"):
            service.update_report(
                context=context_for(editor),
                report_id=report.id,
                data=ReportUpdateData(content=_doc("changed")),
            )
    assert issubclass(ReportLockedError, ForbiddenError)


def test_privileged_non_owner_edit_snapshots_previous_content(
    db_session: Session, service: ReportLifecycleService, make_user
) -> None:
    owner = make_user("alice")
    hod = make_user("hod", UserRole.HOD)
    report = _create_daily(service, owner, text="original")

    updated = service.update_report(
        context=context_for(hod),
        report_id=report.id,
        data=ReportUpdateData(content=_doc("corrected"), edit_reason="Fixed typo"),
    )

    versions = service.list_versions(context=context_for(owner), report_id=report.id)
    assert len(versions) == 1
    assert versions[0].content == _doc("original")
    assert versions[0].edited_by_id == hod.id
    assert versions[0].edit_reason == "Fixed typo"
    assert updated.content == _doc("corrected")


def test_privileged_edit_without_reason_uses_default(service: ReportLifecycleService, make_user) -> None:
    owner = make_user("alice")
    hr = make_user("hr", UserRole.HR)
    report = _create_daily(service, owner)

    service.update_report(context=context_for(hr), report_id=report.id, data=ReportUpdateData(title="Renamed"))

    versions = service.list_versions(context=context_for(hr), report_id=report.id)
    assert [version.edit_reason for version in versions] == ["Edited by HR/HOD"]


def test_owner_edit_creates_no_version(db_session: Session, service: ReportLifecycleService, make_user) -> None:
    owner = make_user("alice")
    report = _create_daily(service, owner)

    service.update_report(context=context_for(owner), report_id=report.id, data=ReportUpdateData(content=_doc("v2")))

    assert _count(db_session, ReportVersion, ReportVersion.report_id == report.id) == 0


def test_staff_cannot_edit_or_read_someone_elses_report(service: ReportLifecycleService, make_user) -> None:
    owner = make_user("alice")
    other = make_user("bob")
    report = _create_daily(service, owner)

    with pytest.raises(ForbiddenError):
        service.update_report(context=context_for(other), report_id=report.id, data=ReportUpdateData(title="x"))
    with pytest.raises(ForbiddenError):
        service.get_report(context=context_for(other), report_id=report.id)
    with pytest.raises(ForbiddenError):
        service.list_versions(context=context_for(other), report_id=report.id)


def test_submit_refreshes_submitted_at(service: ReportLifecycleService, clock: FrozenClock, make_user) -> None:
    owner = make_user("alice")
    report = _create_daily(service, owner)

    first = service.submit_report(context=context_for(owner), report_id=report.id)
    assert first.status is ReportStatus.SUBMITTED
    assert first.submitted_at == datetime(2024, 3, 4, 9, 0)

    clock.set(datetime(2024, 3, 4, 11, 30, tzinfo=timezone.utc))
    second = service.submit_report(context=context_for(owner), report_id=report.id)
    assert second.submitted_at == datetime(2024, 3, 4, 11, 30)


def test_only_owner_may_submit(service: ReportLifecycleService, make_user) -> None:
    owner = make_user("alice")
    report = _create_daily(service, owner)

    with pytest.raises(ForbiddenError):
        service.submit_report(context=context_for(make_user("admin", UserRole.ADMIN)), report_id=report.id)


def test_review_requires_submitted_state(service: ReportLifecycleService, make_user) -> None:
    owner = make_user("alice")
    hod = make_user("hod", UserRole.HOD)
    report = _create_daily(service, owner)

    with pytest.raises(InvalidTransitionError):
        service.review_report(context=context_for(hod), report_id=report.id)
    with pytest.raises(ForbiddenError):
        service.review_report(context=context_for(owner), report_id=report.id)

    service.submit_report(context=context_for(owner), report_id=report.id)
    reviewed = service.review_report(context=context_for(hod), report_id=report.id)
    assert reviewed.status is ReportStatus.REVIEWED


def test_lock_is_restricted_to_hr_and_admin(service: ReportLifecycleService, make_user) -> None:
    owner = make_user("alice")
    report = _create_daily(service, owner)

    for role, key in ((UserRole.STAFF, "staff2"), (UserRole.HOD, "hod")):
        with pytest.raises(ForbiddenError):
            service.lock_report(context=context_for(make_user(key, role)), report_id=report.id)
        with pytest.raises(ForbiddenError):
            service.unlock_report(context=context_for(make_user(f"{key}-u", role)), report_id=report.id)

    locked = service.lock_report(context=context_for(make_user("admin", UserRole.ADMIN)), report_id=report.id)
    _assert_lock_invariant(locked)
    assert locked.is_locked is True


def test_each_lock_call_emits_exactly_one_notification(
    db_session: Session, service: ReportLifecycleService, make_user
) -> None:
    owner = make_user("alice")
    hr = make_user("hr", UserRole.HR)
    report = _create_daily(service, owner)

    service.lock_report(context=context_for(hr), report_id=report.id)
    assert _count(db_session, Notification, Notification.type == NotificationType.LOCK) == 1

    relocked = service.lock_report(context=context_for(hr), report_id=report.id)
    _assert_lock_invariant(relocked)
    assert _count(db_session, Notification, Notification.type == NotificationType.LOCK) == 2

    notification = db_session.scalars(select(Notification)).first()
    assert notification.recipient_id == owner.id
    assert notification.related_report_id == report.id
    assert "locked by HR" in notification.message


def test_lock_unlock_scenario(db_session: Session, service: ReportLifecycleService, make_user) -> None:
    owner = make_user("alice")
    hr = make_user("hr", UserRole.HR)
    report = _create_daily(service, owner, text="first draft")
    service.submit_report(context=context_for(owner), report_id=report.id)

    locked = service.lock_report(context=context_for(hr), report_id=report.id)
    _assert_lock_invariant(locked)
    assert locked.locked_by_id == hr.id

    with pytest.raises(ReportLockedError):
        service.update_report(
            context=context_for(owner), report_id=report.id, data=ReportUpdateData(content=_doc("late edit"))
        )

    unlocked = service.unlock_report(context=context_for(hr), report_id=report.id)
    _assert_lock_invariant(unlocked)
    assert unlocked.status is ReportStatus.SUBMITTED

    updated = service.update_report(
        context=context_for(owner), report_id=report.id, data=ReportUpdateData(content=_doc("late edit"))
    )
    assert updated.content == _doc("late edit")
    assert _count(db_session, ReportVersion, ReportVersion.report_id == report.id) == 0
    assert _count(db_session, Notification, Notification.type == NotificationType.UNLOCK) == 1


def test_unlock_requires_a_locked_report(
    db_session: Session, clock: FrozenClock, service: ReportLifecycleService, make_user
) -> None:
    owner = make_user("alice")
    hr = make_user("hr", UserRole.HR)
    draft = _create_daily(service, owner)
    reviewed = _create_daily(service, owner, day=MONDAY + timedelta(days=1))
    service.submit_report(context=context_for(owner), report_id=reviewed.id)
    service.review_report(context=context_for(hr), report_id=reviewed.id)

    for report in (draft, reviewed):
        with pytest.raises(InvalidTransitionError):
            service.unlock_report(context=context_for(hr), report_id=report.id)

    db_session.expire_all()
    assert draft.status is ReportStatus.DRAFT
    assert draft.submitted_at is None
    assert reviewed.status is ReportStatus.REVIEWED
    assert _count(db_session, Notification, Notification.type == NotificationType.UNLOCK) == 0

    compiled = ReportAggregator(db_session, clock=clock).compile_weekly(owner_id=owner.id, anchor=MONDAY)
    assert compiled.included_reports == [str(reviewed.id)]


def test_delete_only_own_draft(db_session: Session, service: ReportLifecycleService, make_user) -> None:
    owner = make_user("alice")
    hr = make_user("hr", UserRole.HR)
    draft = _create_daily(service, owner)
    submitted = _create_daily(service, owner, day=MONDAY + timedelta(days=1))
    service.submit_report(context=context_for(owner), report_id=submitted.id)

    with pytest.raises(ForbiddenError):
        service.delete_report(context=context_for(hr), report_id=draft.id)
    with pytest.raises(ForbiddenError, match="draft"):
        service.delete_report(context=context_for(owner), report_id=submitted.id)

    service.update_report(context=context_for(hr), report_id=draft.id, data=ReportUpdateData(title="HR edit"))
    service.delete_report(context=context_for(owner), report_id=draft.id)

    assert _count(db_session, Report, Report.id == draft.id) == 0
    assert _count(db_session, ReportVersion, ReportVersion.report_id == draft.id) == 0
    with pytest.raises(NotFoundError):
        service.get_report(context=context_for(owner), report_id=draft.id)


def test_list_reports_is_scoped_by_role(service: ReportLifecycleService, make_user, department) -> None:
    alice = make_user("alice", department_id=department.id)
    bob = make_user("bob")
    hod = make_user("hod", UserRole.HOD, department_id=department.id)
    hr = make_user("hr", UserRole.HR)
    _create_daily(service, alice)
    _create_daily(service, bob)

    staff_page = service.list_reports(context=context_for(bob), filters=ReportFilters())
    hod_page = service.list_reports(context=context_for(hod), filters=ReportFilters())
    hr_page = service.list_reports(context=context_for(hr), filters=ReportFilters(), limit=1)

    assert [report.owner_id for report in staff_page.items] == [bob.id]
    assert [report.owner_id for report in hod_page.items] == [alice.id]
    assert hr_page.total == 2
    assert hr_page.total_pages == 2
    assert len(hr_page.items) == 1


def test_get_today_returns_daily_report_for_clock_date(service: ReportLifecycleService, make_user) -> None:
    owner = make_user("alice")
    assert service.get_today(context=context_for(owner)) is None

    report = _create_daily(service, owner)

    assert service.get_today(context=context_for(owner)).id == report.id
