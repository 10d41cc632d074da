import re
from datetime import date, datetime, time
from typing import Any, Dict, FrozenSet, List, Optional, Union

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

from academic_backend.core.enums import AssignmentStatus, ConflictDimension, Weekday
from academic_backend.core.scheduling import format_weekdays, parse_weekdays

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d):([0-5]\d)$")


def _parse_time_hms(v: Union[str, time]) -> time:
    """Parse a 24-hour HH:MM:SS string to time."""
    if isinstance(v, time):
        return v
    if isinstance(v, str) and _TIME_RE.match(v.strip()):
        return datetime.strptime(v.strip(), "%H:%M:%S").time()
    raise ValueError("Invalid time format. Use HH:MM:SS (e.g. 08:00:00)")


def _format_time(t: time) -> str:
    return t.strftime("%H:%M:%S")


class RoomAssignmentCreate(BaseModel):
    room_id: int = Field(..., ge=1)
    course_id: int = Field(..., ge=1)
    teacher_id: int = Field(..., ge=1)
    start_time: time = Field(..., description="24-hour HH:MM:SS, e.g. 08:00:00")
    end_time: time = Field(..., description="24-hour HH:MM:SS, e.g. 10:00:00")
    weekdays: FrozenSet[Weekday] = Field(
        ..., description='List of weekday names or comma-delimited string, e.g. "Monday,Wednesday"'
    )
    notes: Optional[str] = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Union[str, time]) -> time:
        return _parse_time_hms(v)

    @field_validator("weekdays", mode="before")
    @classmethod
    def parse_days(cls, v: Any) -> FrozenSet[Weekday]:
        return parse_weekdays(v)


class RoomAssignmentUpdate(BaseModel):
    """Patch: only the fields present in the request body are changed."""

    room_id: Optional[int] = Field(None, ge=1)
    course_id: Optional[int] = Field(None, ge=1)
    teacher_id: Optional[int] = Field(None, ge=1)
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    weekdays: Optional[FrozenSet[Weekday]] = None
    status: Optional[AssignmentStatus] = None
    notes: Optional[str] = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Optional[Union[str, time]]) -> Optional[time]:
        if v is None:
            return None
        return _parse_time_hms(v)

    @field_validator("weekdays", mode="before")
    @classmethod
    def parse_days(cls, v: Any) -> Optional[FrozenSet[Weekday]]:
        if v is None:
            return None
        return parse_weekdays(v)

    @model_validator(mode="after")
    def reject_explicit_nulls(self) -> "RoomAssignmentUpdate":
        # notes is the only nullable column
        for name in self.model_fields_set - {"notes"}:
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class AvailabilityQuery(BaseModel):
    room_id: int = Field(..., ge=1)
    start_time: time
    end_time: time
    weekdays: FrozenSet[Weekday]
    exclude_id: Optional[int] = Field(None, ge=1, description="Assignment being edited")
    teacher_id: Optional[int] = Field(None, ge=1, description="Also check this teacher's schedule")
    course_id: Optional[int] = Field(None, ge=1, description="Also check this course's schedule")

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Union[str, time]) -> time:
        return _parse_time_hms(v)

    @field_validator("weekdays", mode="before")
    @classmethod
    def parse_days(cls, v: Any) -> FrozenSet[Weekday]:
        return parse_weekdays(v)


class RoomSummary(BaseModel):
    id: int
    code: str
    name: str
    location: Optional[str] = None
    status: str


class CourseSummary(BaseModel):
    id: int
    code: str
    name: str
    course_type: Optional[str] = None
    start_date: date
    end_date: date
    capacity: int
    status: str


class TeacherSummary(BaseModel):
    id: int
    identification: str
    full_name: str


class RoomAssignmentResponse(BaseModel):
    id: int
    room_id: int
    course_id: int
    teacher_id: int
    start_time: time
    end_time: time
    weekdays: FrozenSet[Weekday]
    status: AssignmentStatus
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    room: RoomSummary
    course: CourseSummary
    teacher: TeacherSummary
    enrolled_students: int = 0
    occupancy_percentage: Optional[int] = None

    @field_validator("weekdays", mode="before")
    @classmethod
    def parse_days(cls, v: Any) -> FrozenSet[Weekday]:
        return parse_weekdays(v)

    @field_serializer("start_time", "end_time")
    def serialize_time(self, t: time) -> str:
        return _format_time(t)

    @field_serializer("weekdays")
    def serialize_weekdays(self, days: FrozenSet[Weekday]) -> str:
        return format_weekdays(days)


class ConflictDescriptor(BaseModel):
    """An existing assignment that collides with a proposed window on one dimension."""

    assignment_id: int
    dimension: ConflictDimension
    room_id: int
    room_name: str
    course_id: int
    course_name: str
    teacher_id: int
    teacher_name: str
    start_time: time
    end_time: time
    weekdays: FrozenSet[Weekday]
    course_start_date: date
    course_end_date: date

    @field_validator("weekdays", mode="before")
    @classmethod
    def parse_days(cls, v: Any) -> FrozenSet[Weekday]:
        return parse_weekdays(v)

    @field_serializer("start_time", "end_time")
    def serialize_time(self, t: time) -> str:
        return _format_time(t)

    @field_serializer("weekdays")
    def serialize_weekdays(self, days: FrozenSet[Weekday]) -> str:
        return format_weekdays(days)


class AvailabilityResponse(BaseModel):
    available: bool
    conflicts: List[ConflictDescriptor] = Field(default_factory=list)


class RoomAssignmentPage(BaseModel):
    items: List[RoomAssignmentResponse]
    total: int = Field(..., ge=0, description="Total number of assignments matching the filters")
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=0)


class RoomAssignmentStatistics(BaseModel):
    total: int
    active: int
    inactive: int
    cancelled: int
    rooms_in_use: int
    teachers_assigned: int


class MessageResponse(BaseModel):
    message: str
