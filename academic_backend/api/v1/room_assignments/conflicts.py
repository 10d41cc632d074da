"""
Conflict query shared by the room, teacher and course dimensions.

Candidates are narrowed in SQL (same dimension key, active assignment, schedulable
course); the window and weekday tests run on the loaded rows with the same
predicates everywhere.
"""

from datetime import time
from typing import AbstractSet, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from academic_backend.core.enums import SCHEDULABLE_COURSE_STATUS_VALUES, AssignmentStatus, ConflictDimension, Weekday
from academic_backend.core.models import Course, RoomAssignment
from academic_backend.core.scheduling import format_window, intervals_overlap, weekdays_intersect

from .schemas import ConflictDescriptor

_DIMENSION_COLUMNS = {
    ConflictDimension.ROOM: RoomAssignment.room_id,
    ConflictDimension.TEACHER: RoomAssignment.teacher_id,
    ConflictDimension.COURSE: RoomAssignment.course_id,
}


def _to_descriptor(dimension: ConflictDimension, a: RoomAssignment) -> ConflictDescriptor:
    return ConflictDescriptor(
        assignment_id=a.id,
        dimension=dimension,
        room_id=a.room_id,
        room_name=a.room.name,
        course_id=a.course_id,
        course_name=a.course.name,
        teacher_id=a.teacher_id,
        teacher_name=a.teacher.full_name,
        start_time=a.start_time,
        end_time=a.end_time,
        weekdays=a.weekdays,
        course_start_date=a.course.start_date,
        course_end_date=a.course.end_date,
    )


async def find_conflicts(
    db: AsyncSession,
    dimension: ConflictDimension,
    key: int,
    start_time: time,
    end_time: time,
    weekdays: AbstractSet[Weekday],
    exclude_id: Optional[int] = None,
) -> List[ConflictDescriptor]:
    column = _DIMENSION_COLUMNS[dimension]
    stmt = (
        select(RoomAssignment)
        .join(Course, RoomAssignment.course_id == Course.id)
        .options(
            joinedload(RoomAssignment.room),
            joinedload(RoomAssignment.course),
            joinedload(RoomAssignment.teacher),
        )
        .where(
            column == key,
            RoomAssignment.status == AssignmentStatus.ACTIVE.value,
            Course.status.in_(SCHEDULABLE_COURSE_STATUS_VALUES),
        )
        .order_by(RoomAssignment.start_time, RoomAssignment.id)
    )
    if exclude_id is not None:
        stmt = stmt.where(RoomAssignment.id != exclude_id)
    result = await db.execute(stmt)
    return [
        _to_descriptor(dimension, a)
        for a in result.scalars().all()
        if intervals_overlap(start_time, end_time, a.start_time, a.end_time)
        and weekdays_intersect(weekdays, a.weekdays)
    ]


def conflict_message(conflict: ConflictDescriptor) -> str:
    """Human-readable rejection naming the competing booking for the given dimension."""
    window = format_window(conflict.start_time, conflict.end_time)
    if conflict.dimension == ConflictDimension.ROOM:
        return (
            f'Schedule conflict: room "{conflict.room_name}" is already assigned to course '
            f'"{conflict.course_name}" with teacher {conflict.teacher_name} at {window}'
        )
    if conflict.dimension == ConflictDimension.TEACHER:
        return (
            f'Schedule conflict: teacher {conflict.teacher_name} is already teaching course '
            f'"{conflict.course_name}" in room "{conflict.room_name}" at {window}'
        )
    return (
        f'Schedule conflict: course "{conflict.course_name}" is already scheduled in room '
        f'"{conflict.room_name}" with teacher {conflict.teacher_name} at {window}'
    )
