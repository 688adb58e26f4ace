"""Authentication context extraction and role-order guard utilities."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from reportdesk.core.config import get_settings
from reportdesk.core.errors import UnauthorizedError
from reportdesk.db.dependencies import get_db_session
from reportdesk.models.entities import User, UserRole

# Total order over roles: staff < hr < hod < admin.
ROLE_RANK: dict[UserRole, int] = {
    UserRole.STAFF: 1,
    UserRole.HR: 2,
    UserRole.HOD: 3,
    UserRole.ADMIN: 4,
}

# Lock/unlock is an HR action; HOD reviews and edits but does not lock.
LOCK_ROLES = frozenset({UserRole.HR, UserRole.ADMIN})


def at_least(role: UserRole, threshold: UserRole) -> bool:
    """Whether ``role`` ranks at or above ``threshold``."""

    return ROLE_RANK[role] >= ROLE_RANK[threshold]


@dataclass(frozen=True)
class RequestUserContext:
    """Authenticated request actor resolved from headers and DB state."""

    user_id: UUID
    external_subject: str
    email: str
    display_name: str
    role: UserRole
    department_id: UUID | None = None
    unit_id: UUID | None = None

    @property
    def is_elevated(self) -> bool:
        """HR, HOD or admin."""

        return at_least(self.role, UserRole.HR)

    @property
    def can_lock(self) -> bool:
        return self.role in LOCK_ROLES

    @classmethod
    def from_user(cls, user: User) -> RequestUserContext:
        return cls(
            user_id=user.id,
            external_subject=user.external_subject,
            email=user.email,
            display_name=user.full_name or user.email,
            role=user.role,
            department_id=user.department_id,
            unit_id=user.unit_id,
        )


def _require_identity_headers(
    x_auth_subject: str | None,
    x_auth_email: str | None,
    x_auth_name: str | None,
) -> tuple[str, str, str]:
    if not x_auth_subject or not x_auth_email:
        raise UnauthorizedError(
            "Missing identity headers. Expected X-Auth-Subject and X-Auth-Email or enable development "
            "principal fallback."
        )

    display_name = x_auth_name or x_auth_email
    return x_auth_subject.strip(), x_auth_email.strip().lower(), display_name.strip()


def _resolve_identity(
    x_auth_subject: str | None,
    x_auth_email: str | None,
    x_auth_name: str | None,
) -> tuple[str, str, str]:
    settings = get_settings()
    if x_auth_subject and x_auth_email:
        return _require_identity_headers(x_auth_subject, x_auth_email, x_auth_name)

    if settings.auth_allow_dev_principal:
        return (
            settings.auth_dev_subject.strip(),
            settings.auth_dev_email.strip().lower(),
            settings.auth_dev_display_name.strip(),
        )

    return _require_identity_headers(x_auth_subject, x_auth_email, x_auth_name)


def _split_name(display_name: str) -> tuple[str, str]:
    first, _, last = display_name.strip().partition(" ")
    return first, last.strip()


def _upsert_user(db: Session, *, external_subject: str, email: str, display_name: str) -> User:
    user = db.scalar(select(User).where(User.external_subject == external_subject))
    now = datetime.utcnow()

    if user is None:
        first_name, last_name = _split_name(display_name or email)
        user = User(
            external_subject=external_subject,
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=UserRole.STAFF,
            is_active=True,
            last_login_at=now,
            created_at=now,
            updated_at=now,
        )
        db.add(user)
        db.flush()
        return user

    if user.email != email:
        user.email = email
        user.updated_at = now

    user.last_login_at = now
    db.flush()
    return user


def ensure_user_principal(
    db: Session,
    *,
    external_subject: str,
    email: str,
    display_name: str,
    role: UserRole | None = None,
) -> User:
    """Ensure user exists and return persisted row.

    Utility exported for tests and seed helpers; ``role`` overrides the stored
    role when given.
    """

    user = _upsert_user(
        db,
        external_subject=external_subject.strip(),
        email=email.strip().lower(),
        display_name=display_name.strip() or email,
    )
    if role is not None and user.role != role:
        user.role = role
        user.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(user)
    return user


def get_current_user_context(
    x_auth_subject: str | None = Header(default=None, alias="X-Auth-Subject"),
    x_auth_email: str | None = Header(default=None, alias="X-Auth-Email"),
    x_auth_name: str | None = Header(default=None, alias="X-Auth-Name"),
    db: Session = Depends(get_db_session),
) -> RequestUserContext:
    """Resolve current request user and role.

    Header strategy: trusted headers set by the authenticating proxy (or test
    clients). Token validation lives in that proxy, not here.
    """

    external_subject, email, display_name = _resolve_identity(x_auth_subject, x_auth_email, x_auth_name)
    user = _upsert_user(db, external_subject=external_subject, email=email, display_name=display_name)
    if not user.is_active:
        db.rollback()
        raise UnauthorizedError("User account is inactive.")
    db.commit()
    return RequestUserContext.from_user(user)


def require_at_least(threshold: UserRole):
    """Dependency factory requiring a role at or above ``threshold``."""

    def dependency(context: RequestUserContext = Depends(get_current_user_context)) -> RequestUserContext:
        if not at_least(context.role, threshold):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role permissions for this operation.",
            )
        return context

    return dependency


def require_roles(*roles: UserRole):
    """Dependency factory requiring one of the provided roles."""

    allowed = set(roles)

    def dependency(context: RequestUserContext = Depends(get_current_user_context)) -> RequestUserContext:
        if context.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role permissions for this operation.",
            )
        return context

    return dependency
