from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from academic_backend.db.session import Base


class Teacher(Base):
    __tablename__ = "teachers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    identification = Column(String(30), nullable=False, unique=True)
    first_names = Column(String(100), nullable=False)
    last_names = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_names} {self.last_names}"
