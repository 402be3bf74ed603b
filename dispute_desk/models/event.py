"""Dispute audit event model."""

from datetime import datetime
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from dispute_desk.models.actor import SenderRole

EventType = Literal[
    "created",
    "status_changed",
    "message_sent",
    "evidence_uploaded",
    "assigned",
    "escalated",
    "resolved",
    "ai_analyzed",
]


class DisputeEvent(BaseModel):
    """An immutable record of something notable that happened to a dispute."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()), description="Unique event ID")
    dispute_id: str = Field(description="Dispute the event belongs to")
    event_type: EventType = Field(description="What happened")
    actor_id: str | None = Field(default=None, description="Who caused it")
    actor_role: SenderRole | None = Field(default=None, description="Role of the actor")
    description: str = Field(default="", description="Human-readable summary")
    old_value: dict[str, Any] | None = Field(default=None, description="Snapshot before")
    new_value: dict[str, Any] | None = Field(default=None, description="Snapshot after")
    created_at: datetime = Field(default_factory=datetime.now, description="When it happened")
