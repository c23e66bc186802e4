"""Read access to the audit log, newest first."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select

from gls_kernel.models.audit_event import AuditAction, AuditEvent
from gls_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class AuditEntry:
    """Snapshot of one audit row."""
    seq: int
    entity_type: str
    entity_id: UUID
    action: str
    actor_id: UUID
    payload: dict[str, Any]
    occurred_at: datetime


class AuditSelector(BaseSelector[AuditEvent]):
    """Filtered, paginated audit log queries."""

    def list_events(
        self,
        entity_type: str | None = None,
        action: AuditAction | str | None = None,
        entity_id: UUID | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AuditEntry]:
        stmt = select(AuditEvent)
        if entity_type is not None:
            stmt = stmt.where(AuditEvent.entity_type == entity_type)
        if action is not None:
            value = action.value if isinstance(action, AuditAction) else action
            stmt = stmt.where(AuditEvent.action == value)
        if entity_id is not None:
            stmt = stmt.where(AuditEvent.entity_id == entity_id)
        stmt = stmt.order_by(AuditEvent.seq.desc()).limit(limit).offset(offset)
        return [
            AuditEntry(
                seq=row.seq,
                entity_type=row.entity_type,
                entity_id=row.entity_id,
                action=row.action,
                actor_id=row.actor_id,
                payload=dict(row.payload or {}),
                occurred_at=row.occurred_at,
            )
            for row in self.session.scalars(stmt)
        ]

    def count_for_entity(self, entity_id: UUID, action: AuditAction | None = None) -> int:
        stmt = select(func.count()).select_from(AuditEvent).where(AuditEvent.entity_id == entity_id)
        if action is not None:
            stmt = stmt.where(AuditEvent.action == action.value)
        return int(self.session.scalar(stmt) or 0)
