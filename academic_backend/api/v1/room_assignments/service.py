import logging
from datetime import time
from typing import AbstractSet, Any, Dict, Iterable, List, Optional

from fastapi import status
from sqlalchemy import case, distinct, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from academic_backend.auth.schemas import CurrentUser
from academic_backend.core.audit import AuditEvent, AuditSink, emit_audit
from academic_backend.core.enums import (
    SCHEDULABLE_COURSE_STATUS_VALUES,
    AssignmentStatus,
    AuditAction,
    ConflictDimension,
    EnrollmentStatus,
    RoomStatus,
    Weekday,
)
from academic_backend.core.exceptions import (
    ConflictError,
    NotFoundError,
    ServiceError,
    StorageError,
    UnavailableError,
    ValidationError,
)
from academic_backend.core.models import Course, Enrollment, Room, RoomAssignment, Teacher
from academic_backend.core.scheduling import format_weekdays
from academic_backend.db.locks import lock_key, scheduling_lock

from .conflicts import conflict_message, find_conflicts
from .schemas import (
    AvailabilityQuery,
    AvailabilityResponse,
    CourseSummary,
    RoomAssignmentCreate,
    RoomAssignmentPage,
    RoomAssignmentResponse,
    RoomAssignmentStatistics,
    RoomAssignmentUpdate,
    RoomSummary,
    TeacherSummary,
)

logger = logging.getLogger(__name__)

ENTITY_TYPE = "room_assignment"


def _occupancy(enrolled: int, capacity: int) -> Optional[int]:
    if not capacity:
        return None
    return int(enrolled * 100 / capacity + 0.5)


def _to_response(a: RoomAssignment, enrolled: int = 0) -> RoomAssignmentResponse:
    return RoomAssignmentResponse(
        id=a.id,
        room_id=a.room_id,
        course_id=a.course_id,
        teacher_id=a.teacher_id,
        start_time=a.start_time,
        end_time=a.end_time,
        weekdays=a.weekdays,
        status=a.status,
        notes=a.notes,
        created_at=a.created_at,
        updated_at=a.updated_at,
        room=RoomSummary(
            id=a.room.id,
            code=a.room.code,
            name=a.room.name,
            location=a.room.location,
            status=a.room.status,
        ),
        course=CourseSummary(
            id=a.course.id,
            code=a.course.code,
            name=a.course.name,
            course_type=a.course.course_type,
            start_date=a.course.start_date,
            end_date=a.course.end_date,
            capacity=a.course.capacity,
            status=a.course.status,
        ),
        teacher=TeacherSummary(
            id=a.teacher.id,
            identification=a.teacher.identification,
            full_name=a.teacher.full_name,
        ),
        enrolled_students=enrolled,
        occupancy_percentage=_occupancy(enrolled, a.course.capacity),
    )


def _snapshot(a: RoomAssignment) -> Dict[str, Any]:
    return {
        "room_id": a.room_id,
        "course_id": a.course_id,
        "teacher_id": a.teacher_id,
        "start_time": a.start_time.strftime("%H:%M:%S"),
        "end_time": a.end_time.strftime("%H:%M:%S"),
        "weekdays": format_weekdays(a.weekdays),
        "status": a.status,
        "notes": a.notes,
    }


def _base_stmt():
    return select(RoomAssignment).options(
        joinedload(RoomAssignment.room),
        joinedload(RoomAssignment.course),
        joinedload(RoomAssignment.teacher),
    )


async def _enrollment_counts(db: AsyncSession, course_ids: Iterable[int]) -> Dict[int, int]:
    ids = set(course_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(Enrollment.course_id, func.count(Enrollment.id))
        .where(
            Enrollment.course_id.in_(ids),
            Enrollment.status == EnrollmentStatus.ACTIVE.value,
        )
        .group_by(Enrollment.course_id)
    )
    return {course_id: count for course_id, count in result.all()}


async def _to_responses(db: AsyncSession, rows: List[RoomAssignment]) -> List[RoomAssignmentResponse]:
    counts = await _enrollment_counts(db, (a.course_id for a in rows))
    return [_to_response(a, counts.get(a.course_id, 0)) for a in rows]


async def _load(db: AsyncSession, assignment_id: int) -> Optional[RoomAssignment]:
    result = await db.execute(
        _base_stmt()
        .where(RoomAssignment.id == assignment_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def _validate_window(start_time: time, end_time: time, weekdays: AbstractSet[Weekday]) -> None:
    if end_time <= start_time:
        raise ValidationError("end_time must be after start_time")
    if not weekdays:
        raise ValidationError("At least one weekday is required")


async def _validate_references(
    db: AsyncSession,
    room_id: int,
    course_id: int,
    teacher_id: int,
    *,
    require_active_room: bool = True,
) -> None:
    course = await db.get(Course, course_id)
    if not course:
        raise NotFoundError(f"Course {course_id} does not exist")
    room = await db.get(Room, room_id)
    if not room:
        raise NotFoundError(f"Room {room_id} does not exist")
    if require_active_room and room.status != RoomStatus.ACTIVE.value:
        raise UnavailableError(f'Room "{room.name}" is not available (status: {room.status})')
    teacher = await db.get(Teacher, teacher_id)
    if not teacher:
        raise NotFoundError(f"Teacher {teacher_id} does not exist")


async def _ensure_no_conflicts(
    db: AsyncSession,
    room_id: int,
    course_id: int,
    teacher_id: int,
    start_time: time,
    end_time: time,
    weekdays: AbstractSet[Weekday],
    exclude_id: Optional[int] = None,
) -> None:
    """Room, then teacher, then course: the first dimension with a hit is reported."""
    for dimension, key in (
        (ConflictDimension.ROOM, room_id),
        (ConflictDimension.TEACHER, teacher_id),
        (ConflictDimension.COURSE, course_id),
    ):
        conflicts = await find_conflicts(db, dimension, key, start_time, end_time, weekdays, exclude_id)
        if conflicts:
            first = conflicts[0]
            logger.info(
                "Rejected %s conflict with assignment #%s (%s %s)",
                dimension.value,
                first.assignment_id,
                dimension.value,
                key,
            )
            raise ConflictError(conflict_message(first), dimension.value, first.model_dump(mode="json"))


def _lock_keys(room_id: int, course_id: int, teacher_id: int) -> List[str]:
    return [
        lock_key(ConflictDimension.ROOM.value, room_id),
        lock_key(ConflictDimension.TEACHER.value, teacher_id),
        lock_key(ConflictDimension.COURSE.value, course_id),
    ]


async def _abort(db: AsyncSession, exc: Exception) -> ServiceError:
    """Roll back the open transaction and translate storage failures."""
    await db.rollback()
    if isinstance(exc, ServiceError):
        return exc
    if isinstance(exc, IntegrityError):
        return ServiceError("Room assignment could not be saved", status.HTTP_409_CONFLICT)
    logger.error("Storage failure while saving room assignment", exc_info=exc)
    return StorageError()


def _audit_event(
    action: AuditAction,
    entity_id: int,
    actor: Optional[CurrentUser],
    before: Optional[Dict[str, Any]],
    after: Optional[Dict[str, Any]],
) -> AuditEvent:
    return AuditEvent(
        action=action,
        entity_type=ENTITY_TYPE,
        entity_id=entity_id,
        actor_id=actor.id if actor else None,
        actor_role=actor.role if actor else None,
        before=before,
        after=after,
    )


async def create_room_assignment(
    db: AsyncSession,
    payload: RoomAssignmentCreate,
    *,
    actor: Optional[CurrentUser] = None,
    audit: Optional[AuditSink] = None,
) -> RoomAssignmentResponse:
    _validate_window(payload.start_time, payload.end_time, payload.weekdays)
    try:
        async with scheduling_lock(db, _lock_keys(payload.room_id, payload.course_id, payload.teacher_id)):
            await _validate_references(db, payload.room_id, payload.course_id, payload.teacher_id)
            await _ensure_no_conflicts(
                db,
                payload.room_id,
                payload.course_id,
                payload.teacher_id,
                payload.start_time,
                payload.end_time,
                payload.weekdays,
            )
            obj = RoomAssignment(
                room_id=payload.room_id,
                course_id=payload.course_id,
                teacher_id=payload.teacher_id,
                start_time=payload.start_time,
                end_time=payload.end_time,
                weekdays=payload.weekdays,
                status=AssignmentStatus.ACTIVE.value,
                notes=payload.notes,
            )
            db.add(obj)
            await db.commit()
    except (ServiceError, SQLAlchemyError) as exc:
        raise await _abort(db, exc)

    logger.info(
        "Room assignment #%s created (room=%s teacher=%s course=%s)",
        obj.id,
        obj.room_id,
        obj.teacher_id,
        obj.course_id,
    )
    await emit_audit(audit, _audit_event(AuditAction.CREATE, obj.id, actor, None, _snapshot(obj)))
    return await get_room_assignment(db, obj.id)


async def update_room_assignment(
    db: AsyncSession,
    assignment_id: int,
    payload: RoomAssignmentUpdate,
    *,
    actor: Optional[CurrentUser] = None,
    audit: Optional[AuditSink] = None,
) -> RoomAssignmentResponse:
    obj = await _load(db, assignment_id)
    if not obj:
        raise NotFoundError("Room assignment not found")
    changes = payload.changes()
    if not changes:
        return (await _to_responses(db, [obj]))[0]

    before = _snapshot(obj)
    room_id = changes.get("room_id", obj.room_id)
    course_id = changes.get("course_id", obj.course_id)
    teacher_id = changes.get("teacher_id", obj.teacher_id)
    start_time = changes.get("start_time", obj.start_time)
    end_time = changes.get("end_time", obj.end_time)
    weekdays = changes.get("weekdays", obj.weekdays)
    new_status = AssignmentStatus(changes.get("status", obj.status))
    is_active = new_status == AssignmentStatus.ACTIVE

    _validate_window(start_time, end_time, weekdays)
    try:
        async with scheduling_lock(db, _lock_keys(room_id, course_id, teacher_id)):
            await _validate_references(db, room_id, course_id, teacher_id, require_active_room=is_active)
            if is_active:
                await _ensure_no_conflicts(
                    db, room_id, course_id, teacher_id, start_time, end_time, weekdays, exclude_id=obj.id
                )
            for field, value in changes.items():
                if field == "status":
                    value = new_status.value
                setattr(obj, field, value)
            await db.commit()
    except (ServiceError, SQLAlchemyError) as exc:
        raise await _abort(db, exc)

    logger.info("Room assignment #%s updated (%s)", obj.id, ", ".join(sorted(changes)))
    await emit_audit(audit, _audit_event(AuditAction.UPDATE, obj.id, actor, before, _snapshot(obj)))
    return await get_room_assignment(db, obj.id)


async def cancel_room_assignment(
    db: AsyncSession,
    assignment_id: int,
    *,
    actor: Optional[CurrentUser] = None,
    audit: Optional[AuditSink] = None,
) -> None:
    """Soft delete: the row stays, its status becomes cancelled. Re-cancelling is a no-op."""
    obj = await db.get(RoomAssignment, assignment_id)
    if not obj:
        raise NotFoundError("Room assignment not found")
    if obj.status == AssignmentStatus.CANCELLED.value:
        return
    before = _snapshot(obj)
    obj.status = AssignmentStatus.CANCELLED.value
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        raise await _abort(db, exc)

    logger.info("Room assignment #%s cancelled", assignment_id)
    await emit_audit(audit, _audit_event(AuditAction.CANCEL, assignment_id, actor, before, _snapshot(obj)))


async def get_room_assignment(db: AsyncSession, assignment_id: int) -> RoomAssignmentResponse:
    obj = await _load(db, assignment_id)
    if not obj:
        raise NotFoundError("Room assignment not found")
    return (await _to_responses(db, [obj]))[0]


async def list_room_assignments(
    db: AsyncSession,
    *,
    status: Optional[AssignmentStatus] = None,
    room_id: Optional[int] = None,
    course_id: Optional[int] = None,
    teacher_id: Optional[int] = None,
    page: int = 1,
    page_size: int = 10,
) -> RoomAssignmentPage:
    filters = []
    if status is not None:
        filters.append(RoomAssignment.status == status.value)
    if room_id is not None:
        filters.append(RoomAssignment.room_id == room_id)
    if course_id is not None:
        filters.append(RoomAssignment.course_id == course_id)
    if teacher_id is not None:
        filters.append(RoomAssignment.teacher_id == teacher_id)

    count_stmt = select(func.count(RoomAssignment.id)).where(*filters)
    total = (await db.execute(count_stmt)).scalar() or 0

    stmt = _base_stmt().join(Course, RoomAssignment.course_id == Course.id).where(*filters)
    stmt = stmt.order_by(Course.start_date.desc(), RoomAssignment.start_time.asc(), RoomAssignment.id)
    stmt = stmt.offset((page - 1) * page_size).limit(page_size)
    rows = (await db.execute(stmt)).scalars().all()

    return RoomAssignmentPage(
        items=await _to_responses(db, list(rows)),
        total=total,
        page=page,
        page_size=page_size,
        total_pages=(total + page_size - 1) // page_size,
    )


async def _list_schedulable(db: AsyncSession, column, key: int) -> List[RoomAssignmentResponse]:
    stmt = (
        _base_stmt()
        .join(Course, RoomAssignment.course_id == Course.id)
        .where(
            column == key,
            RoomAssignment.status == AssignmentStatus.ACTIVE.value,
            Course.status.in_(SCHEDULABLE_COURSE_STATUS_VALUES),
        )
        .order_by(Course.start_date, RoomAssignment.start_time, RoomAssignment.id)
    )
    rows = (await db.execute(stmt)).scalars().all()
    return await _to_responses(db, list(rows))


async def list_by_room(db: AsyncSession, room_id: int) -> List[RoomAssignmentResponse]:
    return await _list_schedulable(db, RoomAssignment.room_id, room_id)


async def list_by_teacher(db: AsyncSession, teacher_id: int) -> List[RoomAssignmentResponse]:
    return await _list_schedulable(db, RoomAssignment.teacher_id, teacher_id)


async def check_availability(db: AsyncSession, query: AvailabilityQuery) -> AvailabilityResponse:
    """Report every conflict for the proposed window; room always, teacher/course when given."""
    _validate_window(query.start_time, query.end_time, query.weekdays)
    probes = [(ConflictDimension.ROOM, query.room_id)]
    if query.teacher_id is not None:
        probes.append((ConflictDimension.TEACHER, query.teacher_id))
    if query.course_id is not None:
        probes.append((ConflictDimension.COURSE, query.course_id))

    conflicts = []
    for dimension, key in probes:
        conflicts.extend(
            await find_conflicts(
                db, dimension, key, query.start_time, query.end_time, query.weekdays, query.exclude_id
            )
        )
    return AvailabilityResponse(available=not conflicts, conflicts=conflicts)


async def get_statistics(db: AsyncSession) -> RoomAssignmentStatistics:
    """Counts over assignments whose course is planned or active."""

    def _count_status(value: AssignmentStatus):
        return func.coalesce(func.sum(case((RoomAssignment.status == value.value, 1), else_=0)), 0)

    active_only = RoomAssignment.status == AssignmentStatus.ACTIVE.value
    stmt = (
        select(
            func.count(RoomAssignment.id),
            _count_status(AssignmentStatus.ACTIVE),
            _count_status(AssignmentStatus.INACTIVE),
            _count_status(AssignmentStatus.CANCELLED),
            func.count(distinct(case((active_only, RoomAssignment.room_id)))),
            func.count(distinct(case((active_only, RoomAssignment.teacher_id)))),
        )
        .select_from(RoomAssignment)
        .join(Course, RoomAssignment.course_id == Course.id)
        .where(Course.status.in_(SCHEDULABLE_COURSE_STATUS_VALUES))
    )
    total, active, inactive, cancelled, rooms_in_use, teachers_assigned = (await db.execute(stmt)).one()
    return RoomAssignmentStatistics(
        total=total,
        active=active,
        inactive=inactive,
        cancelled=cancelled,
        rooms_in_use=rooms_in_use,
        teachers_assigned=teachers_assigned,
    )
