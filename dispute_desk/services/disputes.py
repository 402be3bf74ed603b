"""Dispute lifecycle: filing, status transitions, resolution and reopening."""

import re
from datetime import datetime, timedelta
from typing import Any

from dispute_desk.ai.client import RiskAssessmentClient
from dispute_desk.ai.security import sanitize_text
from dispute_desk.config import settings
from dispute_desk.data.storage import DisputeFilter, Storage
from dispute_desk.errors import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from dispute_desk.models.actor import Actor
from dispute_desk.models.assessment import DisputeSnapshot, RiskAssessment, SuggestedResponse
from dispute_desk.models.dispute import (
    AUTO_ADVANCE_STATUSES,
    DISPUTE_REASONS,
    DISPUTE_STATUSES,
    OUTCOME_STATUS,
    REASON_LABELS,
    RESOLUTION_OUTCOMES,
    STATUS_LABELS,
    Dispute,
    Evidence,
    derive_priority,
    format_amount,
    is_terminal,
)
from dispute_desk.models.event import DisputeEvent
from dispute_desk.models.message import Attachment, DisputeMessage
from dispute_desk.services.audit import AuditTrail
from dispute_desk.services.background import BackgroundRunner
from dispute_desk.services.evidence import EvidenceLedger
from dispute_desk.services.evidence_store import EvidenceFile, EvidenceStore, LocalEvidenceStore
from dispute_desk.services.messages import MessageThread, require_party
from dispute_desk.services.notifications import (
    NotificationDispatcher,
    NotificationService,
    OutboxDispatcher,
)
from dispute_desk.utils.logging import AuditLogger, get_logger
from dispute_desk.utils.resilience import call_with_timeout

logger = get_logger("disputes", settings.log_level)

RESOLUTION_FIELDS = (
    "resolution",
    "resolution_amount",
    "resolution_notes",
    "resolved_by",
    "resolved_at",
)


def _snapshot(dispute: Dispute, *fields: str) -> dict[str, Any]:
    """JSON-safe copy of selected dispute fields for audit events."""
    return dispute.model_dump(mode="json", include=set(fields))


def _check_amount(amount: Any, label: str = "amount") -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError(f"{label} must be a whole number of minor currency units")
    if amount < 0:
        raise ValidationError(f"{label} cannot be negative")


def _outcome_label(outcome: str, currency: str, amount: int | None) -> str:
    labels = {
        "full_refund": "Full refund to customer",
        "partial_refund": f"Partial refund of {format_amount(currency, amount)}",
        "favor_merchant": "Resolved in favor of merchant",
        "favor_customer": "Resolved in favor of customer",
        "no_action": "No action taken",
    }
    return labels[outcome]


class DisputeService:
    """Owns the dispute lifecycle and coordinates the thread, evidence,
    audit trail, notifications and risk assessment around each transition.

    Every public mutation takes an explicit ``Actor``. Validation, lookup and
    state checks all happen before anything is written. Notifications and the
    risk assessment run on the background runner and never affect the result
    of the operation that triggered them.
    """

    def __init__(
        self,
        storage: Storage | None = None,
        risk_client: RiskAssessmentClient | None = None,
        dispatcher: NotificationDispatcher | None = None,
        evidence_store: EvidenceStore | None = None,
        runner: BackgroundRunner | None = None,
        audit_logger: AuditLogger | None = None,
    ):
        self.storage = storage or Storage()
        self.audit_logger = audit_logger or AuditLogger(log_dir=self.storage.data_dir / "logs")
        self.runner = runner or BackgroundRunner(audit_logger=self.audit_logger)
        self.risk_client = risk_client or RiskAssessmentClient()

        self.audit = AuditTrail(self.storage, self.audit_logger)
        self.thread = MessageThread(
            self.storage,
            self.audit,
            self.audit_logger,
            after_message=self._after_message,
        )
        self.notifications = NotificationService(
            dispatcher or OutboxDispatcher(self.storage.data_dir / "outbox.jsonl"),
            self.runner,
            self.audit_logger,
        )
        self.evidence = EvidenceLedger(
            self.storage,
            evidence_store or LocalEvidenceStore(self.storage.data_dir / "evidence"),
            self.thread,
            self.audit,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, dispute_id: str) -> Dispute:
        dispute = self.storage.get_dispute_by_id(dispute_id)
        if dispute is None:
            raise NotFoundError(f"Dispute {dispute_id} not found")
        return dispute

    @staticmethod
    def _require_staff(actor: Actor, action: str) -> None:
        if not actor.is_staff:
            raise PermissionDeniedError(f"Only administrators can {action}")

    @staticmethod
    def _status_sender(actor: Actor) -> Actor:
        return actor if actor.role == "admin" else Actor.system()

    # ------------------------------------------------------------------
    # Filing
    # ------------------------------------------------------------------

    def create(
        self,
        actor: Actor,
        customer_id: str,
        reason: str,
        description: str,
        amount: int,
        currency: str | None = None,
        transaction_id: str | None = None,
        payment_id: str | None = None,
        business_id: str | None = None,
        merchant_id: str | None = None,
        customer_name: str | None = None,
        customer_email: str | None = None,
        business_name: str | None = None,
        evidence: list[Evidence] | None = None,
    ) -> Dispute:
        """File a new dispute.

        The dispute is stored in status ``open`` with a priority derived from
        its amount and a merchant deadline. The merchant is notified and a
        risk assessment is requested in the background.

        Raises:
            ValidationError: Missing customer, unknown reason, bad amount or currency
            PermissionDeniedError: A customer filing on someone else's behalf
        """
        if not customer_id:
            raise ValidationError("customer_id is required")
        if reason not in DISPUTE_REASONS:
            raise ValidationError(f"Unknown dispute reason: {reason}")
        _check_amount(amount)
        currency = (currency or settings.default_currency).upper()
        if not re.fullmatch(r"[A-Z]{3}", currency):
            raise ValidationError(f"Invalid currency code: {currency}")
        if actor.role in ("merchant", "ai"):
            raise PermissionDeniedError(f"A {actor.role} cannot file a dispute")
        if actor.role == "customer" and actor.id != customer_id:
            raise PermissionDeniedError("Customers can only file disputes for themselves")

        description = sanitize_text(description or "", self.audit_logger).text
        now = datetime.now()
        dispute = Dispute(
            customer_id=customer_id,
            customer_name=customer_name,
            customer_email=customer_email,
            merchant_id=merchant_id,
            business_id=business_id,
            business_name=business_name,
            transaction_id=transaction_id,
            payment_id=payment_id,
            amount=amount,
            currency=currency,
            reason=reason,
            description=description,
            status="open",
            priority=derive_priority(amount),
            customer_evidence=list(evidence or []),
            created_at=now,
            updated_at=now,
            merchant_deadline=now + timedelta(days=settings.deadlines.merchant_response_days),
            due_date=now + timedelta(days=settings.deadlines.resolution_due_days),
        )
        self.storage.save_dispute(dispute)

        self.audit.record(
            dispute.id,
            "created",
            actor,
            "Dispute filed",
            new_value=_snapshot(dispute, "status", "priority", "amount", "currency", "reason"),
        )
        self.thread.send_message(
            dispute.id,
            Actor.system(),
            f"Dispute filed for {REASON_LABELS[reason]}. "
            f"Amount: {format_amount(currency, amount)}. "
            f"The merchant has {settings.deadlines.merchant_response_days} days to respond.",
            kind="status_change",
        )

        if dispute.merchant_id:
            self.notifications.send(dispute.merchant_id, "dispute_filed", "merchant", dispute)

        self.runner.submit(
            self.run_risk_assessment,
            dispute.id,
            name="risk_assessment",
            dispute_id=dispute.id,
        )

        logger.info(f"Dispute {dispute.id} filed ({dispute.priority} priority)")
        return dispute

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def update_status(
        self,
        dispute_id: str,
        new_status: str,
        actor: Actor,
        notes: str | None = None,
    ) -> Dispute:
        """Move a dispute to ``new_status``.

        Terminal targets stamp ``resolved_at``/``resolved_by``. Terminal
        disputes only leave their status through ``reopen_dispute``.

        Raises:
            PermissionDeniedError: Actor is not an administrator
            ValidationError: Unknown status, or an attempt to go back to open
            NotFoundError: The dispute does not exist
            InvalidStateError: The dispute is in a terminal status
        """
        self._require_staff(actor, "change a dispute's status")
        if new_status not in DISPUTE_STATUSES:
            raise ValidationError(f"Unknown dispute status: {new_status}")
        if new_status == "open":
            raise ValidationError("A dispute cannot be moved back to open")

        now = datetime.now()
        before: dict[str, Any] = {}

        def _apply(dispute: Dispute) -> Dispute:
            if dispute.is_terminal:
                raise InvalidStateError(
                    f"Dispute {dispute.id} is {dispute.status}; reopen it first"
                )
            before.update(_snapshot(dispute, "status"))
            update: dict[str, Any] = {"status": new_status, "updated_at": now}
            if is_terminal(new_status):
                update["resolved_at"] = now
                update["resolved_by"] = actor.id or actor.role
                if notes:
                    update["resolution_notes"] = notes
            return dispute.model_copy(update=update)

        dispute = self.storage.update_dispute(dispute_id, _apply)

        label = STATUS_LABELS[new_status]
        self.thread.send_message(
            dispute_id,
            self._status_sender(actor),
            f"Dispute status updated to: {label}{f'. {notes}' if notes else ''}",
            kind="status_change",
        )
        self.audit.record(
            dispute_id,
            "status_changed",
            actor,
            f"Dispute status changed from {before['status']} to {new_status}",
            old_value=before,
            new_value=_snapshot(dispute, "status", "resolved_at", "resolved_by"),
        )
        self.notifications.notify_parties("dispute_status_changed", dispute)
        return dispute

    def update_dispute_after_message(
        self,
        dispute_id: str,
        sender_role: str,
        actor: Actor | None = None,
    ) -> Dispute | None:
        """Advance the status after a plain message from a party.

        A merchant message moves the dispute to ``under_review`` and a
        customer message to ``pending_merchant``, but only while the dispute
        is still ``open``, ``pending_merchant`` or ``pending_customer``. Once
        an administrator has moved it further, messages no longer change it.

        Returns:
            The dispute if its status changed, otherwise None
        """
        if sender_role == "merchant":
            target = "under_review"
        elif sender_role == "customer":
            target = "pending_merchant"
        else:
            return None

        now = datetime.now()
        before: dict[str, Any] = {}

        def _apply(dispute: Dispute) -> Dispute:
            if dispute.status not in AUTO_ADVANCE_STATUSES:
                return dispute.model_copy(update={"updated_at": now})
            before.update(_snapshot(dispute, "status"))
            update: dict[str, Any] = {"status": target, "updated_at": now}
            if sender_role == "merchant" and dispute.merchant_responded_at is None:
                update["merchant_responded_at"] = now
            return dispute.model_copy(update=update)

        dispute = self.storage.update_dispute(dispute_id, _apply)
        if not before or before["status"] == target:
            return None

        self.audit.record(
            dispute_id,
            "status_changed",
            actor or Actor(role=sender_role),
            f"Dispute status changed from {before['status']} to {target} after {sender_role} message",
            old_value=before,
            new_value=_snapshot(dispute, "status"),
        )
        return dispute

    def _after_message(self, dispute_id: str, actor: Actor) -> None:
        self.update_dispute_after_message(dispute_id, actor.role, actor)

    def resolve(
        self,
        dispute_id: str,
        outcome: str,
        actor: Actor,
        notes: str,
        amount: int | None = None,
    ) -> Dispute:
        """Record the outcome of a dispute.

        ``favor_customer`` and ``full_refund`` end as ``won``,
        ``favor_merchant`` and ``no_action`` as ``lost``, ``partial_refund``
        as ``resolved``. A full refund without an amount records the whole
        disputed amount. No money is moved here.

        Raises:
            PermissionDeniedError: Actor is not an administrator
            ValidationError: Unknown outcome or a bad amount
            NotFoundError: The dispute does not exist
            InvalidStateError: The dispute is already in a terminal status
        """
        self._require_staff(actor, "resolve disputes")
        if outcome not in RESOLUTION_OUTCOMES:
            raise ValidationError(f"Unknown resolution outcome: {outcome}")
        if amount is not None:
            _check_amount(amount, "resolution amount")
        if outcome == "partial_refund" and amount is None:
            raise ValidationError("A partial refund requires an amount")

        status = OUTCOME_STATUS[outcome]
        now = datetime.now()
        before: dict[str, Any] = {}

        def _apply(dispute: Dispute) -> Dispute:
            if dispute.is_terminal:
                raise InvalidStateError(
                    f"Dispute {dispute.id} is already {dispute.status}; reopen it first"
                )
            if amount is not None and amount > dispute.amount:
                raise ValidationError(
                    f"Resolution amount {amount} exceeds disputed amount {dispute.amount}"
                )
            before.update(_snapshot(dispute, "status"))
            resolution_amount = amount
            if outcome == "full_refund" and amount is None:
                resolution_amount = dispute.amount
            return dispute.model_copy(update={
                "status": status,
                "resolution": outcome,
                "resolution_amount": resolution_amount,
                "resolution_notes": notes,
                "resolved_at": now,
                "resolved_by": actor.id or actor.role,
                "updated_at": now,
            })

        dispute = self.storage.update_dispute(dispute_id, _apply)

        label = _outcome_label(outcome, dispute.currency, dispute.resolution_amount)
        self.thread.send_message(
            dispute_id,
            self._status_sender(actor),
            f"**Dispute Resolved**\n\nOutcome: {label}\n\n{notes}",
            kind="resolution",
        )
        self.audit.record(
            dispute_id,
            "resolved",
            actor,
            f"Dispute resolved: {outcome}",
            old_value=before,
            new_value=_snapshot(dispute, "status", *RESOLUTION_FIELDS),
        )
        self.notifications.notify_parties(
            "dispute_resolved",
            dispute,
            resolution=label,
            refund_amount=dispute.resolution_amount,
        )
        logger.info(f"Dispute {dispute_id} resolved as {status} ({outcome})")
        return dispute

    def escalate(self, dispute_id: str, actor: Actor, reason: str) -> Dispute:
        """Escalate a dispute. It becomes urgent whatever its amount.

        Raises:
            ValidationError: No reason given
            NotFoundError: The dispute does not exist
            PermissionDeniedError: The AI actor, or a customer or merchant of
                another dispute
            InvalidStateError: The dispute is in a terminal status
        """
        if actor.role == "ai":
            raise PermissionDeniedError("Escalation requires a person or the system")
        if not reason or not reason.strip():
            raise ValidationError("An escalation reason is required")
        require_party(self._require(dispute_id), actor)

        now = datetime.now()
        before: dict[str, Any] = {}

        def _apply(dispute: Dispute) -> Dispute:
            if dispute.is_terminal:
                raise InvalidStateError(
                    f"Dispute {dispute.id} is {dispute.status} and cannot be escalated"
                )
            before.update(_snapshot(dispute, "status", "priority"))
            return dispute.model_copy(update={
                "status": "escalated",
                "priority": "urgent",
                "updated_at": now,
            })

        dispute = self.storage.update_dispute(dispute_id, _apply)

        self.thread.send_message(
            dispute_id,
            Actor.system(),
            f"**Dispute Escalated**\n\nReason: {reason}\n\n"
            "This dispute has been marked as urgent and escalated for immediate review.",
            kind="status_change",
        )
        self.audit.record(
            dispute_id,
            "escalated",
            actor,
            reason,
            old_value=before,
            new_value=_snapshot(dispute, "status", "priority"),
        )
        self.notifications.notify_parties("dispute_escalated", dispute, reason=reason)
        return dispute

    def reopen_dispute(self, dispute_id: str, actor: Actor, reason: str) -> Dispute:
        """Send a closed dispute back to review.

        The resolution fields are cleared on the record; their previous
        values are kept in the ``old_value`` of the reopen event.

        Raises:
            PermissionDeniedError: Actor is not an administrator
            NotFoundError: The dispute does not exist
            InvalidStateError: The dispute is not in a terminal status
        """
        self._require_staff(actor, "reopen disputes")

        now = datetime.now()
        before: dict[str, Any] = {}

        def _apply(dispute: Dispute) -> Dispute:
            if not dispute.is_terminal:
                raise InvalidStateError(
                    f"Dispute {dispute.id} is {dispute.status}; only closed disputes can be reopened"
                )
            before.update(_snapshot(dispute, "status", *RESOLUTION_FIELDS))
            update: dict[str, Any] = {field: None for field in RESOLUTION_FIELDS}
            update.update(status="under_review", updated_at=now)
            return dispute.model_copy(update=update)

        dispute = self.storage.update_dispute(dispute_id, _apply)

        self.thread.send_message(
            dispute_id,
            self._status_sender(actor),
            f"**Dispute Reopened**\n\nReason: {reason}\n\n"
            "This dispute has been reopened for further review.",
            kind="status_change",
        )
        self.audit.record(
            dispute_id,
            "status_changed",
            actor,
            f"Dispute reopened: {reason}",
            old_value=before,
            new_value=_snapshot(dispute, "status"),
        )
        self.notifications.notify_parties("dispute_reopened", dispute)
        return dispute

    def assign_to_admin(self, dispute_id: str, admin_id: str, actor: Actor) -> Dispute:
        """Assign a dispute to an administrator."""
        self._require_staff(actor, "assign disputes")
        if not admin_id:
            raise ValidationError("admin_id is required")

        before: dict[str, Any] = {}

        def _apply(dispute: Dispute) -> Dispute:
            before.update(_snapshot(dispute, "assigned_to"))
            return dispute.model_copy(update={
                "assigned_to": admin_id,
                "updated_at": datetime.now(),
            })

        dispute = self.storage.update_dispute(dispute_id, _apply)
        self.audit.record(
            dispute_id,
            "assigned",
            actor,
            "Dispute assigned to admin",
            old_value=before,
            new_value=_snapshot(dispute, "assigned_to"),
        )
        return dispute

    def submit_merchant_response(self, dispute_id: str, actor: Actor, response: str) -> Dispute:
        """Record the merchant's formal response and post it to the thread.

        Raises:
            PermissionDeniedError: Actor is not the dispute's merchant
            ValidationError: Empty response
            NotFoundError: The dispute does not exist
        """
        if actor.role != "merchant":
            raise PermissionDeniedError("Only the merchant can submit a merchant response")
        text = sanitize_text(response or "", self.audit_logger).text
        if not text.strip():
            raise ValidationError("Response text is required")
        require_party(self._require(dispute_id), actor)

        self.storage.update_dispute(
            dispute_id,
            lambda d: d.model_copy(update={"merchant_response": text, "updated_at": datetime.now()}),
        )
        self.thread.send_message(dispute_id, actor, text)
        return self._require(dispute_id)

    # ------------------------------------------------------------------
    # Thread and evidence
    # ------------------------------------------------------------------

    def send_message(
        self,
        dispute_id: str,
        actor: Actor,
        content: str,
        kind: str = "message",
        attachments: list[Attachment] | None = None,
        is_internal: bool = False,
        visible_to: list[str] | None = None,
    ) -> DisputeMessage:
        """Post a message; see ``MessageThread.send_message``."""
        return self.thread.send_message(
            dispute_id,
            actor,
            content,
            kind=kind,
            attachments=attachments,
            is_internal=is_internal,
            visible_to=visible_to,
        )

    def get_messages(
        self,
        dispute_id: str,
        include_internal: bool = False,
        viewer_role: str | None = None,
    ) -> list[DisputeMessage]:
        self._require(dispute_id)
        return self.thread.get_messages(
            dispute_id, include_internal=include_internal, viewer_role=viewer_role
        )

    def mark_read(self, dispute_id: str, party_id: str) -> None:
        self._require(dispute_id)
        self.thread.mark_read(dispute_id, party_id)

    def unread_count(self, dispute_id: str, party_id: str, viewer_role: str | None = None) -> int:
        self._require(dispute_id)
        return self.thread.unread_count(dispute_id, party_id, viewer_role=viewer_role)

    def delete_message(self, dispute_id: str, message_id: str, actor: Actor) -> DisputeMessage:
        self._require(dispute_id)
        return self.thread.delete_message(dispute_id, message_id, actor)

    def upload_evidence(self, dispute_id: str, file: EvidenceFile, actor: Actor) -> Evidence:
        """Store evidence for the acting party; see ``EvidenceLedger``."""
        return self.evidence.upload_evidence(dispute_id, file, actor)

    # ------------------------------------------------------------------
    # Risk assessment
    # ------------------------------------------------------------------

    def snapshot(self, dispute: Dispute) -> DisputeSnapshot:
        """The fields of ``dispute`` the assessment client gets to see."""
        return DisputeSnapshot(
            id=dispute.id,
            transaction_id=dispute.transaction_id or "",
            amount=dispute.amount,
            currency=dispute.currency,
            transaction_date=dispute.created_at,
            reason=dispute.reason,
            customer_statement=dispute.description,
            merchant_response=dispute.merchant_response,
            merchant_name=dispute.business_name or "Unknown",
            business_name=dispute.business_name or "Unknown",
            customer_evidence=[e.name for e in dispute.customer_evidence],
            merchant_evidence=[e.name for e in dispute.merchant_evidence],
        )

    def run_risk_assessment(self, dispute_id: str) -> RiskAssessment | None:
        """Assess a dispute and attach the score.

        Runs in the background after filing. Any exception propagates to the
        runner, which logs it; the dispute is then simply left without a score.
        Only the model call is bounded by the timeout, so a late result is
        discarded before anything is written.
        """
        if not self.risk_client.is_configured():
            logger.info(f"Risk assessment not configured, skipping dispute {dispute_id}")
            return None

        dispute = self._require(dispute_id)
        assessment = call_with_timeout(
            self.risk_client.analyze,
            settings.risk_timeout_seconds,
            self.snapshot(dispute),
        )
        self.storage.save_assessment(assessment)

        self.storage.update_dispute(
            dispute_id,
            lambda d: d.model_copy(update={
                "fraud_risk_score": assessment.fraud_risk_score,
                "ai_analysis_id": assessment.id,
                "updated_at": datetime.now(),
            }),
        )

        ai = Actor.ai()
        self.thread.send_message(
            dispute_id,
            ai,
            f"**AI Fraud Analysis Complete**\n\n"
            f"Fraud Risk: {assessment.fraud_risk_score:g}%\n"
            f"Recommendation: {assessment.recommendation}\n"
            f"Confidence: {assessment.confidence_score:g}%\n\n"
            f"{assessment.reasoning}",
            kind="ai_analysis",
            is_internal=True,
            visible_to=["admin"],
        )
        self.audit.record(
            dispute_id,
            "ai_analyzed",
            ai,
            f"AI analysis complete. Fraud risk: {assessment.fraud_risk_score:g}%",
            new_value={
                "fraud_risk_score": assessment.fraud_risk_score,
                "ai_analysis_id": assessment.id,
            },
        )
        return assessment

    def get_suggested_response(self, dispute: Dispute | str) -> SuggestedResponse | None:
        """Draft a merchant response on demand.

        Returns:
            The suggestion, or None if the assessment client is unavailable
        """
        if isinstance(dispute, str):
            dispute = self._require(dispute)
        if not self.risk_client.is_configured():
            return None
        try:
            return call_with_timeout(
                self.risk_client.suggest_response,
                settings.risk_timeout_seconds,
                self.snapshot(dispute),
            )
        except Exception as e:
            self.audit_logger.log_degraded("suggest_response", str(e), dispute_id=dispute.id)
            return None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_dispute(self, dispute_id: str) -> Dispute:
        """Get a dispute by ID.

        Raises:
            NotFoundError: If it does not exist
        """
        return self._require(dispute_id)

    def list_by_customer(self, customer_id: str) -> list[Dispute]:
        """Disputes filed by a customer, newest first."""
        return self.storage.get_disputes(DisputeFilter(customer_id=customer_id))

    def list_by_business(self, business_id: str) -> list[Dispute]:
        """Disputes against a business, newest first."""
        return self.storage.get_disputes(DisputeFilter(business_id=business_id))

    def list_all(self, filters: DisputeFilter | None = None) -> tuple[list[Dispute], int]:
        """One page of disputes plus the total number matching ``filters``."""
        return self.storage.query_disputes(filters or DisputeFilter())

    def list_overdue(self, now: datetime | None = None) -> list[Dispute]:
        """Open disputes whose merchant deadline passed without a response."""
        now = now or datetime.now()
        return [
            d
            for d in self.storage.get_disputes()
            if not d.is_terminal
            and d.merchant_responded_at is None
            and d.merchant_deadline is not None
            and d.merchant_deadline < now
        ]

    def get_events(self, dispute_id: str) -> list[DisputeEvent]:
        """Audit trail of a dispute, oldest first."""
        self._require(dispute_id)
        return self.audit.events(dispute_id)

    def get_stats(self) -> dict[str, Any]:
        """Counts by status and the average time to resolution in days."""
        disputes = self.storage.get_disputes()

        by_status = {status: 0 for status in DISPUTE_STATUSES}
        for dispute in disputes:
            by_status[dispute.status] += 1

        resolved = [d for d in disputes if d.resolved_at is not None]
        avg_days = 0.0
        if resolved:
            total_seconds = sum(
                (d.resolved_at - d.created_at).total_seconds() for d in resolved
            )
            avg_days = round(total_seconds / len(resolved) / 86400, 1)

        return {
            "total": len(disputes),
            "by_status": by_status,
            "open": by_status["open"],
            "pending_merchant": by_status["pending_merchant"],
            "under_review": by_status["under_review"],
            "escalated": by_status["escalated"],
            "resolved": sum(1 for d in disputes if d.is_terminal),
            "avg_resolution_time_days": avg_days,
        }

    def wait_for_background(self, timeout: float | None = None) -> None:
        """Wait for queued notifications and assessments to finish."""
        self.runner.drain(timeout)

    def close(self) -> None:
        self.runner.shutdown()
