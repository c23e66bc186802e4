"""
AuditorService -- writer for the append-only audit log.

Responsibility:
    Records one ``AuditEvent`` per state change, inside the caller's
    transaction, so that an audit row exists if and only if the change it
    describes was committed.

Architecture position:
    Kernel > Services.  Called by every module service.  Never commits.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from gls_kernel.domain.clock import Clock, SystemClock
from gls_kernel.logging_config import get_logger
from gls_kernel.models.audit_event import AuditAction, AuditEvent
from gls_kernel.services.sequence_service import SequenceService

logger = get_logger("services.auditor")


def _json_safe(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


class AuditorService:
    """
    Append-only audit log writer.

    Contract:
        ``record`` adds one AuditEvent and flushes.  The row commits or
        rolls back with the surrounding business change.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequences = SequenceService(session)

    def record(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        seq = self._sequences.next_value(SequenceService.AUDIT_EVENT)
        event = AuditEvent(
            seq=seq,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action.value,
            actor_id=actor_id,
            payload=_json_safe(payload or {}),
            occurred_at=self._clock.now(),
        )
        self._session.add(event)
        self._session.flush()
        logger.debug(
            "audit_event_recorded",
            extra={
                "seq": seq,
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action.value,
            },
        )
        return event
