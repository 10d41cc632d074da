"""
Audit log for room assignment mutations. One row per create/update/cancel, with
before/after field snapshots.
"""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Integer, String

from academic_backend.db.session import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Integer, nullable=False, index=True)
    action = Column(String(50), nullable=False)
    performed_by = Column(String(64), nullable=True)
    performed_by_role = Column(String(50), nullable=True)
    before_data = Column(JSON, nullable=True)
    after_data = Column(JSON, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
