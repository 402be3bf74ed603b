"""Best-effort notifications to dispute parties."""

import json
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Literal
from uuid import uuid4

from dispute_desk.config import settings
from dispute_desk.models.dispute import REASON_LABELS, STATUS_LABELS, Dispute, format_amount
from dispute_desk.services.background import BackgroundRunner
from dispute_desk.utils.logging import AuditLogger, get_logger

logger = get_logger("notifications", settings.log_level)

NotificationKind = Literal[
    "dispute_filed",
    "dispute_status_changed",
    "dispute_resolved",
    "dispute_escalated",
    "dispute_reopened",
]

UserType = Literal["customer", "merchant"]

# (title, customer message, merchant message)
TEMPLATES: dict[str, tuple[str, str, str]] = {
    "dispute_filed": (
        "New Dispute Filed",
        "Your dispute for {amount} has been filed.",
        "{customer_name} filed a dispute for {amount} ({reason}). "
        "Please respond within {response_days} days.",
    ),
    "dispute_status_changed": (
        "Dispute Updated",
        "Your dispute for {amount} is now: {status}.",
        "A dispute for {amount} is now: {status}.",
    ),
    "dispute_resolved": (
        "Dispute Resolved",
        "Your dispute for {amount} has been resolved. {resolution}.",
        "A dispute for {amount} has been resolved. {resolution}.",
    ),
    "dispute_escalated": (
        "Dispute Escalated",
        "Your dispute for {amount} has been escalated for urgent review. Reason: {reason}",
        "A dispute for {amount} has been escalated for urgent review. Reason: {reason}",
    ),
    "dispute_reopened": (
        "Dispute Reopened",
        "Your dispute for {amount} has been reopened for further review.",
        "A dispute for {amount} has been reopened for further review.",
    ),
}

PRIORITIES: dict[str, str] = {
    "dispute_filed": "high",
    "dispute_status_changed": "normal",
    "dispute_resolved": "high",
    "dispute_escalated": "urgent",
    "dispute_reopened": "high",
}


class NotificationDispatcher:
    """Delivers one notice to one user. Implementations may raise freely."""

    def notify(self, user_id: str, event_kind: str, payload: dict[str, Any]) -> None:
        raise NotImplementedError


class OutboxDispatcher(NotificationDispatcher):
    """Appends notices to a JSONL outbox that a delivery layer consumes in order."""

    def __init__(self, outbox_file: Path | None = None):
        self.outbox_file = outbox_file or settings.outbox_file
        self.outbox_file.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()

    def notify(self, user_id: str, event_kind: str, payload: dict[str, Any]) -> None:
        record = {
            "id": str(uuid4()),
            "user_id": user_id,
            "event_kind": event_kind,
            "payload": payload,
            "created_at": datetime.now().isoformat(),
        }
        with self._lock:
            with open(self.outbox_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(record, default=str) + "\n")


def render_notification(
    kind: NotificationKind,
    user_type: UserType,
    dispute: Dispute,
    **context: Any,
) -> dict[str, Any]:
    """Build the payload for one notice from its template."""
    title, customer_template, merchant_template = TEMPLATES[kind]
    values = {
        "amount": format_amount(dispute.currency, dispute.amount),
        "customer_name": dispute.customer_name or "Customer",
        "reason": REASON_LABELS[dispute.reason],
        "status": STATUS_LABELS[dispute.status],
        "response_days": settings.deadlines.merchant_response_days,
        "resolution": "",
    }
    values.update(context)
    template = customer_template if user_type == "customer" else merchant_template
    action_url = (
        f"/disputes/{dispute.id}"
        if user_type == "customer"
        else f"/merchant/disputes/{dispute.id}"
    )
    payload = {
        "title": title,
        "message": template.format(**values),
        "action_url": action_url,
        "priority": PRIORITIES[kind],
        "dispute_id": dispute.id,
        "user_type": user_type,
        "status": dispute.status,
        "amount": dispute.amount,
        "currency": dispute.currency,
    }
    if context:
        payload["details"] = dict(context)
    return payload


class NotificationService:
    """Renders and dispatches dispute notices without ever failing the caller."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        runner: BackgroundRunner,
        audit_logger: AuditLogger | None = None,
        timeout: float | None = None,
    ):
        self.dispatcher = dispatcher
        self.runner = runner
        self.audit_logger = audit_logger
        self.timeout = timeout if timeout is not None else settings.notification_timeout_seconds

    def send(
        self,
        user_id: str,
        kind: NotificationKind,
        user_type: UserType,
        dispute: Dispute,
        **context: Any,
    ) -> None:
        """Queue one notice. Returns before delivery is attempted."""
        try:
            payload = render_notification(kind, user_type, dispute, **context)
        except (KeyError, ValueError) as e:
            logger.error(f"Could not render {kind} notification: {e}")
            return
        self.runner.submit(
            self._deliver,
            user_id,
            kind,
            payload,
            name=f"notify:{kind}",
            timeout=self.timeout,
            dispute_id=dispute.id,
        )

    def notify_parties(self, kind: NotificationKind, dispute: Dispute, **context: Any) -> int:
        """Queue a notice for the customer and, if linked, the merchant.

        Returns:
            Number of notices queued
        """
        queued = 0
        if dispute.customer_id:
            self.send(dispute.customer_id, kind, "customer", dispute, **context)
            queued += 1
        if dispute.merchant_id:
            self.send(dispute.merchant_id, kind, "merchant", dispute, **context)
            queued += 1
        return queued

    def _deliver(self, user_id: str, kind: str, payload: dict[str, Any]) -> None:
        try:
            self.dispatcher.notify(user_id, kind, payload)
        except Exception as e:
            if self.audit_logger:
                self.audit_logger.log_notification(user_id, kind, payload, error=str(e))
            else:
                logger.warning(f"Failed to send {kind} notification: {e}")
            return
        if self.audit_logger:
            self.audit_logger.log_notification(user_id, kind, payload)
