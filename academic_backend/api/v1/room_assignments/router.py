from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from academic_backend.auth.dependencies import get_current_user
from academic_backend.auth.rbac import check_permission
from academic_backend.auth.schemas import CurrentUser
from academic_backend.core.audit import AuditSink, get_audit_sink
from academic_backend.core.config import settings
from academic_backend.core.enums import AssignmentStatus
from academic_backend.db.session import get_db

from .schemas import (
    AvailabilityQuery,
    AvailabilityResponse,
    MessageResponse,
    RoomAssignmentCreate,
    RoomAssignmentPage,
    RoomAssignmentResponse,
    RoomAssignmentStatistics,
    RoomAssignmentUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/room-assignments", tags=["room-assignments"])

MODULE = "room_assignments"


@router.get(
    "",
    response_model=RoomAssignmentPage,
    dependencies=[Depends(check_permission(MODULE, "read"))],
)
async def list_room_assignments(
    status_filter: Optional[AssignmentStatus] = Query(None, alias="status"),
    room_id: Optional[int] = Query(None, ge=1),
    course_id: Optional[int] = Query(None, ge=1),
    teacher_id: Optional[int] = Query(None, ge=1),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: AsyncSession = Depends(get_db),
):
    return await service.list_room_assignments(
        db,
        status=status_filter,
        room_id=room_id,
        course_id=course_id,
        teacher_id=teacher_id,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/statistics",
    response_model=RoomAssignmentStatistics,
    dependencies=[Depends(check_permission(MODULE, "read"))],
)
async def get_statistics(db: AsyncSession = Depends(get_db)):
    return await service.get_statistics(db)


@router.get(
    "/availability",
    response_model=AvailabilityResponse,
    dependencies=[Depends(check_permission(MODULE, "read"))],
)
async def check_availability(
    room_id: int = Query(..., ge=1),
    start_time: str = Query(..., description="HH:MM:SS"),
    end_time: str = Query(..., description="HH:MM:SS"),
    weekdays: str = Query(..., description='Comma-delimited, e.g. "Monday,Wednesday"'),
    exclude_id: Optional[int] = Query(None, ge=1),
    teacher_id: Optional[int] = Query(None, ge=1),
    course_id: Optional[int] = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),
):
    try:
        query = AvailabilityQuery(
            room_id=room_id,
            start_time=start_time,
            end_time=end_time,
            weekdays=weekdays,
            exclude_id=exclude_id,
            teacher_id=teacher_id,
            course_id=course_id,
        )
    except PydanticValidationError as e:
        raise RequestValidationError(e.errors(include_url=False, include_context=False))
    return await service.check_availability(db, query)


@router.get(
    "/rooms/{room_id}",
    response_model=List[RoomAssignmentResponse],
    dependencies=[Depends(check_permission(MODULE, "read"))],
)
async def list_by_room(room_id: int, db: AsyncSession = Depends(get_db)):
    return await service.list_by_room(db, room_id)


@router.get(
    "/teachers/{teacher_id}",
    response_model=List[RoomAssignmentResponse],
    dependencies=[Depends(check_permission(MODULE, "read"))],
)
async def list_by_teacher(teacher_id: int, db: AsyncSession = Depends(get_db)):
    return await service.list_by_teacher(db, teacher_id)


@router.get(
    "/{assignment_id}",
    response_model=RoomAssignmentResponse,
    dependencies=[Depends(check_permission(MODULE, "read"))],
)
async def get_room_assignment(assignment_id: int, db: AsyncSession = Depends(get_db)):
    return await service.get_room_assignment(db, assignment_id)


@router.post(
    "",
    response_model=RoomAssignmentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission(MODULE, "create"))],
)
async def create_room_assignment(
    payload: RoomAssignmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    audit: AuditSink = Depends(get_audit_sink),
):
    return await service.create_room_assignment(db, payload, actor=current_user, audit=audit)


@router.put(
    "/{assignment_id}",
    response_model=RoomAssignmentResponse,
    dependencies=[Depends(check_permission(MODULE, "update"))],
)
async def update_room_assignment(
    assignment_id: int,
    payload: RoomAssignmentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    audit: AuditSink = Depends(get_audit_sink),
):
    return await service.update_room_assignment(db, assignment_id, payload, actor=current_user, audit=audit)


@router.delete(
    "/{assignment_id}",
    response_model=MessageResponse,
    dependencies=[Depends(check_permission(MODULE, "delete"))],
)
async def cancel_room_assignment(
    assignment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    audit: AuditSink = Depends(get_audit_sink),
):
    await service.cancel_room_assignment(db, assignment_id, actor=current_user, audit=audit)
    return MessageResponse(message="Room assignment cancelled")
