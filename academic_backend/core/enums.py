from enum import Enum


class Weekday(str, Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"


class AssignmentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"


class RoomStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"
    RESERVED = "reserved"


class CourseStatus(str, Enum):
    PLANNED = "planned"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    FINISHED = "finished"


class EnrollmentStatus(str, Enum):
    ACTIVE = "active"
    WITHDRAWN = "withdrawn"


class ConflictDimension(str, Enum):
    ROOM = "room"
    TEACHER = "teacher"
    COURSE = "course"


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    CANCEL = "cancel"


# Only these course states take part in scheduling conflicts.
SCHEDULABLE_COURSE_STATUSES = (CourseStatus.PLANNED, CourseStatus.ACTIVE)
SCHEDULABLE_COURSE_STATUS_VALUES = tuple(s.value for s in SCHEDULABLE_COURSE_STATUSES)
