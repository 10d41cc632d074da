import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from datetime import date
from typing import AsyncGenerator, Dict, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from academic_backend.api.v1.room_assignments.schemas import RoomAssignmentCreate
from academic_backend.auth.security import create_access_token
from academic_backend.core.audit import AuditEvent, AuditSink, get_audit_sink
from academic_backend.core.models import Course, Enrollment, Room, Teacher
from academic_backend.db.session import Base, get_db
from academic_backend.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class RecordingAuditSink(AuditSink):
    def __init__(self) -> None:
        self.events: List[AuditEvent] = []

    async def record(self, event: AuditEvent) -> None:
        self.events.append(event)


class FailingAuditSink(AuditSink):
    async def record(self, event: AuditEvent) -> None:
        raise RuntimeError("audit store is down")


@pytest.fixture()
async def engine():
    """One in-memory SQLite database per test, shared by every session (StaticPool)."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def seed(session_factory) -> None:
    """Rooms 1-3, courses 10-14 and teachers 5-7, with ids matching the scenarios in the tests."""
    async with session_factory() as session:
        session.add_all(
            [
                Room(id=1, code="A-101", name="Aula 101", location="Block A", status="active"),
                Room(id=2, code="A-102", name="Aula 102", location="Block A", status="active"),
                Room(id=3, code="B-201", name="Lab 201", location="Block B", status="maintenance"),
                Course(
                    id=10, code="MATH-1", name="Algebra", course_type="Regular",
                    start_date=date(2026, 3, 2), end_date=date(2026, 7, 31), capacity=30, status="active",
                ),
                Course(
                    id=11, code="PHYS-1", name="Physics", course_type="Regular",
                    start_date=date(2026, 4, 6), end_date=date(2026, 8, 28), capacity=25, status="planned",
                ),
                Course(
                    id=12, code="CHEM-1", name="Chemistry", course_type="Workshop",
                    start_date=date(2026, 2, 2), end_date=date(2026, 6, 26), capacity=20, status="active",
                ),
                Course(
                    id=13, code="HIST-1", name="History", course_type="Regular",
                    start_date=date(2025, 9, 1), end_date=date(2025, 12, 19), capacity=40, status="finished",
                ),
                Course(
                    id=14, code="ART-1", name="Drawing", course_type="Workshop",
                    start_date=date(2026, 5, 4), end_date=date(2026, 9, 25), capacity=0, status="planned",
                ),
                Teacher(id=5, identification="T-005", first_names="Ana", last_names="Torres"),
                Teacher(id=6, identification="T-006", first_names="Luis", last_names="Paredes"),
                Teacher(id=7, identification="T-007", first_names="Marta", last_names="Vega"),
            ]
        )
        await session.flush()
        session.add_all(
            [Enrollment(course_id=10, student_ref=f"S-{n}", status="active") for n in range(9)]
            + [Enrollment(course_id=10, student_ref="S-99", status="withdrawn")]
        )
        await session.commit()


@pytest.fixture()
async def db_session(session_factory, seed) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture()
async def client(session_factory, seed, audit_sink) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app, one DB session per request."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_audit_sink] = lambda: audit_sink

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def auth_headers(
    role: str = "SUPER_ADMIN",
    permissions: Optional[Dict[str, Dict[str, bool]]] = None,
    user_id: str = "user-1",
) -> Dict[str, str]:
    token = create_access_token(
        subject={"sub": user_id, "role": role, "permissions": permissions or {}}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_headers() -> Dict[str, str]:
    return auth_headers()


def make_payload(**overrides) -> RoomAssignmentCreate:
    data = {
        "room_id": 1,
        "course_id": 10,
        "teacher_id": 5,
        "start_time": "08:00:00",
        "end_time": "10:00:00",
        "weekdays": "Monday,Wednesday",
    }
    data.update(overrides)
    return RoomAssignmentCreate(**data)
