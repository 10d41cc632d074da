import pytest
from fastapi import HTTPException
from sqlalchemy import select

from conftest import FailingAuditSink, RecordingAuditSink
from academic_backend.auth.dependencies import get_current_user
from academic_backend.auth.security import create_access_token
from academic_backend.core.audit import AuditEvent, AuditSink, DatabaseAuditSink, emit_audit
from academic_backend.core.enums import AuditAction
from academic_backend.core.models import AuditLog


def _event() -> AuditEvent:
    return AuditEvent(
        action=AuditAction.UPDATE,
        entity_type="room_assignment",
        entity_id=42,
        actor_id="user-9",
        actor_role="COORDINATOR",
        before={"notes": None},
        after={"notes": "moved"},
    )


@pytest.mark.asyncio
async def test_database_sink_writes_audit_row(session_factory) -> None:
    await DatabaseAuditSink(session_factory).record(_event())

    async with session_factory() as session:
        rows = (await session.execute(select(AuditLog))).scalars().all()

    assert len(rows) == 1
    assert rows[0].entity_type == "room_assignment"
    assert rows[0].entity_id == 42
    assert rows[0].action == "update"
    assert rows[0].performed_by == "user-9"
    assert rows[0].before_data == {"notes": None}
    assert rows[0].after_data == {"notes": "moved"}


@pytest.mark.asyncio
async def test_emit_audit_swallows_sink_failures(caplog) -> None:
    await emit_audit(FailingAuditSink(), _event())

    assert "Audit sink failed" in caplog.text


@pytest.mark.asyncio
async def test_emit_audit_without_sink_is_noop() -> None:
    await emit_audit(None, _event())


@pytest.mark.asyncio
async def test_emit_audit_forwards_event() -> None:
    sink = RecordingAuditSink()

    await emit_audit(sink, _event())

    assert [e.entity_id for e in sink.events] == [42]


@pytest.mark.asyncio
async def test_current_user_from_token() -> None:
    token = create_access_token(
        subject={"sub": "user-3", "role": "TEACHER", "permissions": {"room_assignments": {"read": True}}}
    )

    user = await get_current_user(token)

    assert user.id == "user-3"
    assert user.role == "TEACHER"
    assert user.permissions == {"room_assignments": {"read": True}}


@pytest.mark.asyncio
async def test_token_without_role_is_rejected() -> None:
    token = create_access_token(subject={"sub": "user-3"})

    with pytest.raises(HTTPException) as exc_info:
        await get_current_user(token)

    assert exc_info.value.status_code == 401


def test_audit_sink_is_abstract() -> None:
    with pytest.raises(TypeError):
        AuditSink()
