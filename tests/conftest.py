"""
Shared fixtures for all tests.

Strategy:
- The engine tests are pure and need no fixtures beyond event builders.
- API tests run the real FastAPI app through httpx ASGITransport.
  ``get_db`` is overridden with ``FakeSession`` (an in-memory stand-in for
  AsyncSession) so no PostgreSQL is needed; routes that run SQL queries
  are fed through ``FakeSession.queue`` or by monkeypatching the small
  data-access helpers in the router modules.
- Executed statements are kept in ``FakeSession.statements``; ``compile_pg``
  renders them as PostgreSQL SQL so tests can check filters and paging.
- ``login_as(user)`` overrides ``get_current_user``; tests exercising the
  real token check send a bearer token instead.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.dialects import postgresql

from daysheet.core.middleware import get_current_user
from daysheet.core.security import hash_password
from daysheet.db.models import AttendanceLog, User
from daysheet.db.session import get_db
from daysheet.main import app
from daysheet.schemas.attendance import ClockEvent

# ---------------------------------------------------------------------------
# In-memory session
# ---------------------------------------------------------------------------


class FakeResult:
    def __init__(self, value=None, rowcount: int = 0) -> None:
        self._value = value
        self.rowcount = rowcount

    def scalar_one_or_none(self):
        return self._value

    def scalar_one(self):
        return self._value

    def scalars(self):
        return self

    def all(self):
        if self._value is None:
            return []
        return list(self._value) if isinstance(self._value, list) else [self._value]


class FakeSession:
    """Records writes and executed statements; answers ``execute`` from a FIFO queue."""

    def __init__(self) -> None:
        self.added: list = []
        self.commits = 0
        self.objects: dict[tuple[type, object], object] = {}
        self.results: list[FakeResult] = []
        self.statements: list = []

    def queue(self, value, rowcount: int = 0) -> None:
        self.results.append(FakeResult(value, rowcount))

    def put(self, obj) -> None:
        self.objects[(type(obj), obj.id)] = obj

    async def execute(self, statement, *args, **kwargs) -> FakeResult:
        self.statements.append(statement)
        return self.results.pop(0) if self.results else FakeResult()

    async def get(self, cls, pk):
        return self.objects.get((cls, pk))

    def add(self, obj) -> None:
        self.added.append(obj)

    async def commit(self) -> None:
        self.commits += 1

    async def refresh(self, obj) -> None:
        # stands in for server-side defaults
        if getattr(obj, "id", None) is None:
            obj.id = uuid.uuid4() if isinstance(obj, User) else len(self.added)
        if isinstance(obj, AttendanceLog) and obj.created_at is None:
            obj.created_at = datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_user(
    role: str = "employee",
    password: str = "Secret123!",
    is_active: bool = True,
    timezone_name: str | None = None,
    shift_id: int | None = None,
) -> User:
    uid_short = uuid.uuid4().hex[:8]
    return User(
        id=uuid.uuid4(),
        username=f"qa_{role}_{uid_short}",
        password_hash=hash_password(password),
        role=role,
        full_name=f"QA {role.title()} {uid_short}",
        email=None,
        is_active=is_active,
        shift_id=shift_id,
        timezone=timezone_name,
    )


def compile_pg(statement) -> tuple[str, dict]:
    """SQL text and bound parameters as PostgreSQL would receive them."""
    compiled = statement.compile(dialect=postgresql.dialect())
    return str(compiled), compiled.params


def utc(value: str) -> datetime:
    """'2026-01-07 09:05' → aware UTC datetime."""
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


def ev(value: str, event: str) -> ClockEvent:
    return ClockEvent(timestamp=utc(value), event=event)


def make_log(employee_id: uuid.UUID, value: str, event: str, log_id: int = 1) -> AttendanceLog:
    return AttendanceLog(
        id=log_id,
        employee_id=employee_id,
        event=event,
        timestamp=utc(value),
        punch_type="web",
        has_address=False,
        location_address=None,
        is_remote=True,
        device=None,
        note=None,
        is_deleted=False,
    )


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_db() -> FakeSession:
    session = FakeSession()
    app.dependency_overrides[get_db] = lambda: session
    yield session
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(fake_db: FakeSession) -> Callable[[User], User]:
    """Authenticate every request as ``user`` and register it in fake_db."""

    def _login(user: User) -> User:
        fake_db.put(user)
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    return _login


@pytest_asyncio.fixture
async def client(fake_db: FakeSession) -> AsyncClient:
    """Fresh HTTPX async client per test function (maintains cookie jar)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
