"""Three-way dispute conversation threads."""

from datetime import datetime
from typing import Any, Callable

from dispute_desk.ai.security import sanitize_text
from dispute_desk.config import settings
from dispute_desk.data.storage import Storage
from dispute_desk.errors import NotFoundError, PermissionDeniedError, ValidationError
from dispute_desk.models.actor import Actor
from dispute_desk.models.dispute import Dispute
from dispute_desk.models.message import (
    DEFAULT_VISIBILITY,
    MESSAGE_KINDS,
    Attachment,
    DisputeMessage,
)
from dispute_desk.services.audit import AuditTrail
from dispute_desk.utils.logging import AuditLogger, get_logger

logger = get_logger("messages", settings.log_level)

VIEWER_ROLES = frozenset(DEFAULT_VISIBILITY)


def require_party(dispute: Dispute, actor: Actor) -> None:
    """Reject customers and merchants acting on a dispute that is not theirs.

    A merchant is accepted on a dispute with no linked merchant.

    Raises:
        PermissionDeniedError: The actor is another customer or merchant
    """
    if actor.role == "customer" and actor.id != dispute.customer_id:
        raise PermissionDeniedError("This dispute belongs to another customer")
    if actor.role == "merchant" and dispute.merchant_id and actor.id != dispute.merchant_id:
        raise PermissionDeniedError("This dispute belongs to another merchant")


class MessageThread:
    """Appends and reads the messages of dispute threads.

    Plain messages may move the dispute along (see
    ``DisputeService.update_dispute_after_message``). That happens after the
    message is stored, as a separate write: a failed status update leaves a
    stored message and a stale status, never a lost message.
    """

    def __init__(
        self,
        storage: Storage,
        audit: AuditTrail,
        audit_logger: AuditLogger | None = None,
        after_message: Callable[[str, Actor], Any] | None = None,
    ):
        self.storage = storage
        self.audit = audit
        self.audit_logger = audit_logger
        self.after_message = after_message

    def send_message(
        self,
        dispute_id: str,
        actor: Actor,
        content: str,
        kind: str = "message",
        attachments: list[Attachment] | None = None,
        is_internal: bool = False,
        visible_to: list[str] | None = None,
        sender_name: str | None = None,
    ) -> DisputeMessage:
        """Post a message to a dispute thread.

        Raises:
            ValidationError: Empty content, unknown kind or unknown viewer role
            PermissionDeniedError: A customer or merchant posting internally, or
                posting to a dispute that is not theirs
            NotFoundError: The dispute does not exist
        """
        if kind not in MESSAGE_KINDS:
            raise ValidationError(f"Unknown message kind: {kind}")

        text = sanitize_text(content or "", self.audit_logger).text
        if not text.strip():
            raise ValidationError("Message content is required")

        if kind == "internal_note":
            is_internal = True
        if is_internal and actor.role in ("customer", "merchant"):
            raise PermissionDeniedError("Only administrators can post internal messages")

        if visible_to is None:
            visible_to = ["admin"] if is_internal else list(DEFAULT_VISIBILITY)
        unknown = set(visible_to) - VIEWER_ROLES
        if unknown:
            raise ValidationError(f"Unknown viewer roles: {sorted(unknown)}")

        dispute = self.storage.get_dispute_by_id(dispute_id)
        if dispute is None:
            raise NotFoundError(f"Dispute {dispute_id} not found")
        require_party(dispute, actor)

        message = DisputeMessage(
            dispute_id=dispute_id,
            sender_id=actor.id,
            sender_role=actor.role,
            sender_name=sender_name or actor.name,
            content=text,
            kind=kind,
            attachments=attachments or [],
            is_internal=is_internal,
            visible_to=visible_to,
        )
        message = self.storage.append_message(message)

        if self.audit_logger:
            self.audit_logger.log_message(
                dispute_id=dispute_id,
                message_id=message.id,
                sender_role=actor.role,
                kind=kind,
                content=text,
                is_internal=is_internal,
            )

        if kind == "message":
            self.audit.record(
                dispute_id,
                "message_sent",
                actor,
                f"{actor.role} sent a message",
                new_value={"message_id": message.id},
            )
            if self.after_message is not None:
                try:
                    self.after_message(dispute_id, actor)
                except Exception:
                    # The message is stored; the status catches up on the next message
                    logger.exception(f"Failed to update dispute {dispute_id} after message")

        return message

    def get_messages(
        self,
        dispute_id: str,
        include_internal: bool = False,
        viewer_role: str | None = None,
        include_deleted: bool = False,
    ) -> list[DisputeMessage]:
        """Get thread messages in creation order.

        Args:
            dispute_id: The dispute
            include_internal: Whether internal messages are included
            viewer_role: If given, only messages visible to this role
            include_deleted: Whether soft-deleted messages are included
        """
        messages = []
        for message in self.storage.get_messages(dispute_id):
            if message.is_deleted and not include_deleted:
                continue
            if message.is_internal and not include_internal:
                continue
            if viewer_role is not None and not message.is_visible_to(viewer_role):
                continue
            messages.append(message)
        return messages

    def mark_read(self, dispute_id: str, party_id: str) -> None:
        """Mark every message of the thread as read by ``party_id``."""
        now = datetime.now()

        def _mark(message: DisputeMessage) -> DisputeMessage:
            last_read = message.read_by.get(party_id)
            if last_read is not None and last_read >= now:
                return message
            return message.model_copy(update={"read_by": {**message.read_by, party_id: now}})

        self.storage.update_messages(dispute_id, _mark)

    def unread_count(
        self,
        dispute_id: str,
        party_id: str,
        viewer_role: str | None = None,
    ) -> int:
        """Count messages ``party_id`` has never read."""
        return sum(
            1
            for message in self.get_messages(
                dispute_id,
                include_internal=viewer_role in (None, "admin"),
                viewer_role=viewer_role,
            )
            if party_id not in message.read_by
        )

    def delete_message(self, dispute_id: str, message_id: str, actor: Actor) -> DisputeMessage:
        """Soft-delete a message. The record stays in the thread.

        Raises:
            NotFoundError: If the message is not in this thread
            PermissionDeniedError: If the actor is neither the sender nor an admin
        """
        existing = next(
            (m for m in self.storage.get_messages(dispute_id) if m.id == message_id),
            None,
        )
        if existing is None:
            raise NotFoundError(f"Message {message_id} not found")
        is_sender = actor.id is not None and actor.id == existing.sender_id
        if not (is_sender or actor.is_staff):
            raise PermissionDeniedError("Only the sender or an administrator can delete a message")
        if existing.is_deleted:
            return existing

        deleted_at = datetime.now()
        deleted_by = actor.id or actor.role

        def _delete(message: DisputeMessage) -> DisputeMessage:
            if message.id != message_id:
                return message
            return message.model_copy(update={"deleted_at": deleted_at, "deleted_by": deleted_by})

        thread = self.storage.update_messages(dispute_id, _delete)
        return next(m for m in thread if m.id == message_id)
