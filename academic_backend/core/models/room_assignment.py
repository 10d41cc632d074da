"""
Room assignment: one room, one teacher and one course booked into a recurring weekly
time window. Never hard-deleted; cancellation is a status change.
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text, Time
from sqlalchemy.orm import relationship

from academic_backend.core.enums import AssignmentStatus
from academic_backend.db.session import Base
from academic_backend.db.types import WeekdaySet


class RoomAssignment(Base):
    __tablename__ = "room_assignments"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_room_assignment_window"),
        Index("ix_room_assignment_room_status", "room_id", "status"),
        Index("ix_room_assignment_teacher_status", "teacher_id", "status"),
        Index("ix_room_assignment_course_status", "course_id", "status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="RESTRICT"), nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="RESTRICT"), nullable=False)
    teacher_id = Column(Integer, ForeignKey("teachers.id", ondelete="RESTRICT"), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    weekdays = Column(WeekdaySet, nullable=False)  # frozenset[Weekday]
    status = Column(String(20), nullable=False, default=AssignmentStatus.ACTIVE.value)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    room = relationship("Room", foreign_keys=[room_id])
    course = relationship("Course", foreign_keys=[course_id])
    teacher = relationship("Teacher", foreign_keys=[teacher_id])
