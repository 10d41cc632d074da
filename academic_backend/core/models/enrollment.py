"""Student enrollment in a course. Read here only to report course occupancy."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from academic_backend.core.enums import EnrollmentStatus
from academic_backend.db.session import Base


class Enrollment(Base):
    __tablename__ = "enrollments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    student_ref = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default=EnrollmentStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
