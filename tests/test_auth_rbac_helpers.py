from __future__ import annotations

import uuid

import pytest

from reportdesk.core.auth import LOCK_ROLES, RequestUserContext, _require_identity_headers, at_least
from reportdesk.core.errors import UnauthorizedError
from reportdesk.models.entities import UserRole


def _context(role: UserRole) -> RequestUserContext:
    return RequestUserContext(
        user_id=uuid.uuid4(),
        external_subject=f"sub-{role.value}",
        email=f"{role.value}@test.local",
        display_name=role.value.title(),
        role=role,
    )


def test_roles_are_totally_ordered() -> None:
    ordered = [UserRole.STAFF, UserRole.HR, UserRole.HOD, UserRole.ADMIN]

    for index, role in enumerate(ordered):
        for other_index, threshold in enumerate(ordered):
            assert at_least(role, threshold) is (index >= other_index)


def test_lock_roles_exclude_hod() -> None:
    assert LOCK_ROLES == {UserRole.HR, UserRole.ADMIN}


@pytest.mark.parametrize(
    ("role", "elevated", "can_lock"),
    [
        (UserRole.STAFF, False, False),
        (UserRole.HR, True, True),
        (UserRole.HOD, True, False),
        (UserRole.ADMIN, True, True),
    ],
)
def test_context_permission_flags(role: UserRole, elevated: bool, can_lock: bool) -> None:
    context = _context(role)

    assert context.is_elevated is elevated
    assert context.can_lock is can_lock


def test_context_from_user_copies_scope(make_user, department, unit) -> None:
    user = make_user("alice", UserRole.HOD, department_id=department.id, unit_id=unit.id)

    context = RequestUserContext.from_user(user)

    assert context.user_id == user.id
    assert context.role is UserRole.HOD
    assert context.department_id == department.id
    assert context.unit_id == unit.id
    assert context.display_name == "Alice Tester"


def test_missing_identity_headers_raise_unauthorized() -> None:
    with pytest.raises(UnauthorizedError):
        _require_identity_headers(None, "alice@test.local", None)

    subject, email, name = _require_identity_headers(" sub-alice ", "Alice@Test.Local", None)
    assert (subject, email, name) == ("sub-alice", "alice@test.local", "Alice@Test.Local")
