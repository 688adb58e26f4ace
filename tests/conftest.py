from __future__ import annotations

from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import reportdesk.models  # noqa: F401
from reportdesk.core.auth import RequestUserContext, ensure_user_principal
from reportdesk.core.clock import FrozenClock, get_clock
from reportdesk.db.base import Base
from reportdesk.db.dependencies import get_db_session
from reportdesk.main import create_app
from reportdesk.models.entities import Department, Unit, User, UserRole
from reportdesk.services.mailer import get_email_dispatcher

# Monday of ISO week 2024-W10.
DEFAULT_NOW = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


@dataclass
class RecordingEmailDispatcher:
    sent: list[tuple[str, str, str]] = field(default_factory=list)
    fail_for: set[str] = field(default_factory=set)

    def send(self, recipient: str, subject: str, body: str) -> bool:
        if recipient in self.fail_for:
            return False
        self.sent.append((recipient, subject, body))
        return True


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture()
def db_session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock(DEFAULT_NOW)


@pytest.fixture()
def mailer() -> RecordingEmailDispatcher:
    return RecordingEmailDispatcher()


@pytest.fixture()
def client(
    db_session: Session,
    clock: FrozenClock,
    mailer: RecordingEmailDispatcher,
) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_email_dispatcher] = lambda: mailer
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def department(db_session: Session) -> Department:
    row = Department(name="Operations", description=None, created_at=DEFAULT_NOW.replace(tzinfo=None))
    db_session.add(row)
    db_session.commit()
    db_session.refresh(row)
    return row


@pytest.fixture()
def unit(db_session: Session, department: Department) -> Unit:
    row = Unit(department_id=department.id, name="Field Team", created_at=DEFAULT_NOW.replace(tzinfo=None))
    db_session.add(row)
    db_session.commit()
    db_session.refresh(row)
    return row


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    def factory(
        key: str,
        role: UserRole = UserRole.STAFF,
        *,
        department_id=None,
        unit_id=None,
        is_active: bool = True,
    ) -> User:
        user = ensure_user_principal(
            db_session,
            external_subject=f"sub-{key}",
            email=f"{key}@test.local",
            display_name=f"{key.title()} Tester",
            role=role,
        )
        user.department_id = department_id
        user.unit_id = unit_id
        user.is_active = is_active
        db_session.commit()
        db_session.refresh(user)
        return user

    return factory


def context_for(user: User) -> RequestUserContext:
    return RequestUserContext.from_user(user)


def auth_headers(user: User) -> dict[str, str]:
    return {
        "X-Auth-Subject": user.external_subject,
        "X-Auth-Email": user.email,
        "X-Auth-Name": user.full_name,
    }
