from academic_backend.core.models.room import Room
from academic_backend.core.models.course import Course
from academic_backend.core.models.teacher import Teacher
from academic_backend.core.models.enrollment import Enrollment
from academic_backend.core.models.room_assignment import RoomAssignment
from academic_backend.core.models.audit_log import AuditLog

__all__ = [
    "AuditLog",
    "Course",
    "Enrollment",
    "Room",
    "RoomAssignment",
    "Teacher",
]
