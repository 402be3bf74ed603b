"""Append-only audit trail of dispute events."""

from typing import Any

from dispute_desk.data.storage import Storage
from dispute_desk.models.actor import Actor
from dispute_desk.models.event import DisputeEvent, EventType
from dispute_desk.utils.logging import AuditLogger


class AuditTrail:
    """Writes one immutable event per notable state change.

    Events go to the dispute's stored history and, masked, to the audit log.
    """

    def __init__(self, storage: Storage, audit_logger: AuditLogger | None = None):
        self.storage = storage
        self.audit_logger = audit_logger

    def record(
        self,
        dispute_id: str,
        event_type: EventType,
        actor: Actor,
        description: str,
        old_value: dict[str, Any] | None = None,
        new_value: dict[str, Any] | None = None,
    ) -> DisputeEvent:
        event = DisputeEvent(
            dispute_id=dispute_id,
            event_type=event_type,
            actor_id=actor.id,
            actor_role=actor.role,
            description=description,
            old_value=old_value,
            new_value=new_value,
        )
        self.storage.append_event(event)
        if self.audit_logger:
            self.audit_logger.log_dispute_event(
                dispute_id=dispute_id,
                event_type=event_type,
                actor_id=actor.id,
                actor_role=actor.role,
                description=description,
            )
        return event

    def events(self, dispute_id: str) -> list[DisputeEvent]:
        """Get the events of a dispute, oldest first."""
        return self.storage.get_events(dispute_id)
