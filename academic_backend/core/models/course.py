"""Course offering. Only planned/active courses take part in schedule conflicts."""

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Integer, String

from academic_backend.core.enums import CourseStatus
from academic_backend.db.session import Base


class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    course_type = Column(String(100), nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    capacity = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=CourseStatus.PLANNED.value)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
