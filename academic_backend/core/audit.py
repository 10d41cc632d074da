"""
Audit sink for room assignment mutations.

Services call `emit_audit` after a successful commit. A failing sink is logged and
ignored: audit problems never undo or fail the mutation itself.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import async_sessionmaker

from academic_backend.core.enums import AuditAction
from academic_backend.core.models import AuditLog
from academic_backend.db.session import AsyncSessionLocal

logger = logging.getLogger(__name__)


class AuditEvent(BaseModel):
    action: AuditAction
    entity_type: str
    entity_id: int
    actor_id: Optional[str] = None
    actor_role: Optional[str] = None
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    occurred_at: datetime = Field(default_factory=datetime.utcnow)


class AuditSink(ABC):
    """Receives audit events. Implementations may raise; callers go through emit_audit."""

    @abstractmethod
    async def record(self, event: AuditEvent) -> None:
        ...


class DatabaseAuditSink(AuditSink):
    """Writes one AuditLog row per event in its own session."""

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal) -> None:
        self._session_factory = session_factory

    async def record(self, event: AuditEvent) -> None:
        async with self._session_factory() as session:
            session.add(
                AuditLog(
                    entity_type=event.entity_type,
                    entity_id=event.entity_id,
                    action=event.action.value,
                    performed_by=event.actor_id,
                    performed_by_role=event.actor_role,
                    before_data=event.before,
                    after_data=event.after,
                    timestamp=event.occurred_at,
                )
            )
            await session.commit()


def get_audit_sink() -> AuditSink:
    return DatabaseAuditSink()


async def emit_audit(sink: Optional[AuditSink], event: AuditEvent) -> None:
    if sink is None:
        return
    try:
        await sink.record(event)
    except Exception:
        logger.warning(
            "Audit sink failed for %s %s #%s",
            event.action.value,
            event.entity_type,
            event.entity_id,
            exc_info=True,
        )
