from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import Settings, set_settings
from app.db import get_session
from app.main import app
from app.models import SQLModel
from app.schemas.auth import AuthContext
from app.services.employee import EmployeeInfo, InMemoryEmployeeService, set_employee_service
from app.services.notification import NotificationQueue, set_notification_queue

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine

DEPARTMENT_ID = uuid.uuid4()


@dataclass
class People:
    """Directory roster shared by the workflow tests."""

    employee: EmployeeInfo
    manager: EmployeeInfo
    hr: EmployeeInfo
    admin: EmployeeInfo
    orphan: EmployeeInfo  # no manager assigned
    peer: EmployeeInfo  # same manager as ``employee``
    directory: InMemoryEmployeeService

    @staticmethod
    def headers(person: EmployeeInfo) -> dict[str, str]:
        return {"X-User-Id": str(person.id), "X-Role": person.role}

    @staticmethod
    def auth(person: EmployeeInfo) -> AuthContext:
        return AuthContext(user_id=person.id, role=person.role)


# ---------------------------------------------------------------------------
# Configuration and collaborators
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def settings(tmp_path: Path) -> Iterator[Settings]:
    """Install test settings: no SMTP, no Firebase, calendar day counting."""
    test_settings = Settings(
        _env_file=None,  # ty: ignore[unknown-argument]
        environment="development",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'leave.db'}",
        notification_queue_size=100,
        notification_drain_timeout_seconds=1.0,
    )
    set_settings(test_settings)
    yield test_settings
    set_settings(None)


@pytest.fixture(autouse=True)
def notification_queue() -> Iterator[NotificationQueue]:
    """Fresh notification queue for every test."""
    queue = NotificationQueue(maxsize=100)
    set_notification_queue(queue)
    yield queue
    set_notification_queue(None)


@pytest.fixture(autouse=True)
def people() -> Iterator[People]:
    """Seed the in-memory employee directory for every test."""
    svc = InMemoryEmployeeService(hr_roles=("hr", "admin"))

    hr = EmployeeInfo(
        id=uuid.uuid4(),
        first_name="Helen",
        last_name="Reyes",
        email="helen@example.com",
        role="hr",
        department_id=DEPARTMENT_ID,
    )
    admin = EmployeeInfo(
        id=uuid.uuid4(),
        first_name="Ada",
        last_name="Admin",
        email="ada@example.com",
        role="admin",
    )
    manager = EmployeeInfo(
        id=uuid.uuid4(),
        first_name="Marcus",
        last_name="Lee",
        email="marcus@example.com",
        role="manager",
        manager_id=hr.id,
        department_id=DEPARTMENT_ID,
    )
    employee = EmployeeInfo(
        id=uuid.uuid4(),
        first_name="Alice",
        last_name="Johnson",
        email="alice@example.com",
        manager_id=manager.id,
        department_id=DEPARTMENT_ID,
        device_tokens=["device-alice"],
    )
    peer = EmployeeInfo(
        id=uuid.uuid4(),
        first_name="Bob",
        last_name="Smith",
        email="bob@example.com",
        manager_id=manager.id,
        department_id=DEPARTMENT_ID,
    )
    orphan = EmployeeInfo(
        id=uuid.uuid4(),
        first_name="Olive",
        last_name="Nobody",
        email="olive@example.com",
    )
    for person in (hr, admin, manager, employee, peer, orphan):
        svc.seed(person)

    set_employee_service(svc)
    yield People(
        employee=employee,
        manager=manager,
        hr=hr,
        admin=admin,
        orphan=orphan,
        peer=peer,
        directory=svc,
    )
    set_employee_service(InMemoryEmployeeService())


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine(settings: Settings) -> AsyncIterator[AsyncEngine]:
    """File-backed SQLite database with a fresh schema for each test."""
    _engine = create_async_engine(settings.database_url)
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """A session for direct service calls and assertions."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def async_client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncClient]:
    """Async HTTP client; every request gets its own session on the test database."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
