"""Dispute thread message model."""

from datetime import datetime
from typing import Literal, get_args
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from dispute_desk.models.actor import SenderRole

MessageKind = Literal[
    "message",
    "evidence",
    "status_change",
    "resolution",
    "ai_analysis",
    "internal_note",
]

MESSAGE_KINDS: tuple[str, ...] = get_args(MessageKind)

DEFAULT_VISIBILITY: tuple[str, ...] = ("customer", "merchant", "admin")


class Attachment(BaseModel):
    """A file reference carried by a message."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(description="Public URL of the file")
    type: str = Field(description="MIME content type")
    name: str = Field(description="File name")
    size: int | None = Field(default=None, description="Size in bytes")


class DisputeMessage(BaseModel):
    """One entry in a dispute's conversation."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="Unique message ID")
    dispute_id: str = Field(description="Owning dispute")

    sender_id: str | None = Field(default=None, description="Sender, absent for system messages")
    sender_role: SenderRole = Field(description="Role the sender wrote as")
    sender_name: str | None = Field(default=None, description="Sender display name")

    content: str = Field(description="Message body")
    kind: MessageKind = Field(default="message", description="Message type")
    attachments: list[Attachment] = Field(default_factory=list, description="Attached files")

    is_internal: bool = Field(default=False, description="Visible to administrators only")
    visible_to: list[str] = Field(
        default_factory=lambda: list(DEFAULT_VISIBILITY),
        description="Roles permitted to view this message",
    )

    read_by: dict[str, datetime] = Field(
        default_factory=dict, description="Party ID to last-read timestamp"
    )

    deleted_at: datetime | None = Field(default=None, description="Soft-delete timestamp")
    deleted_by: str | None = Field(default=None, description="Who deleted the message")

    created_at: datetime = Field(default_factory=datetime.now, description="When sent")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def is_visible_to(self, role: str) -> bool:
        """Check whether a viewer acting as ``role`` may see this message."""
        if self.is_internal and role != "admin":
            return False
        return role in self.visible_to
