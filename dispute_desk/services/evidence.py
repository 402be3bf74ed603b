"""Append-only evidence lists on disputes."""

from datetime import datetime

from dispute_desk.config import settings
from dispute_desk.data.storage import Storage
from dispute_desk.errors import NotFoundError, ValidationError
from dispute_desk.models.actor import Actor
from dispute_desk.models.dispute import Dispute, Evidence
from dispute_desk.models.message import Attachment
from dispute_desk.services.audit import AuditTrail
from dispute_desk.services.evidence_store import EvidenceFile, EvidenceStore
from dispute_desk.services.messages import MessageThread, require_party

EVIDENCE_FIELDS = {
    "customer": "customer_evidence",
    "merchant": "merchant_evidence",
}


def append_evidence(dispute: Dispute, role: str, evidence: Evidence) -> Dispute:
    """Return a copy of ``dispute`` with ``evidence`` added to ``role``'s list.

    Earlier entries are carried over untouched; nothing is ever removed.
    """
    field = EVIDENCE_FIELDS[role]
    return dispute.model_copy(update={
        field: [*dispute.evidence_for(role), evidence],
        "updated_at": datetime.now(),
    })


class EvidenceLedger:
    """Stores uploaded evidence and records it against the uploading party."""

    def __init__(
        self,
        storage: Storage,
        store: EvidenceStore,
        thread: MessageThread,
        audit: AuditTrail,
        max_bytes: int | None = None,
    ):
        self.storage = storage
        self.store = store
        self.thread = thread
        self.audit = audit
        self.max_bytes = max_bytes if max_bytes is not None else settings.evidence.max_bytes

    def upload_evidence(self, dispute_id: str, file: EvidenceFile, actor: Actor) -> Evidence:
        """Store a file and append it to the uploader's evidence list.

        The file is stored before the dispute is touched; if storing fails the
        dispute is left exactly as it was.

        Raises:
            ValidationError: Uploader is not customer or merchant, or bad file
            NotFoundError: The dispute does not exist
            PermissionDeniedError: The uploader is not a party to the dispute
            StorageError: The evidence store failed
        """
        role = actor.role
        if role not in EVIDENCE_FIELDS:
            raise ValidationError(f"Evidence can only be uploaded by customer or merchant, not {role}")
        if file.size == 0:
            raise ValidationError("Evidence file is empty")
        if file.size > self.max_bytes:
            raise ValidationError(
                f"Evidence file is {file.size} bytes, limit is {self.max_bytes}"
            )
        dispute = self.storage.get_dispute_by_id(dispute_id)
        if dispute is None:
            raise NotFoundError(f"Dispute {dispute_id} not found")
        require_party(dispute, actor)

        uploaded_at = datetime.now()
        stored = self.store.store(
            file.data,
            file.content_type,
            f"{int(uploaded_at.timestamp() * 1000)}_{file.name}",
            f"{dispute_id}/{role}",
        )

        evidence = Evidence(
            url=stored.url,
            type=file.content_type,
            name=file.name,
            size=stored.size,
            uploaded_at=uploaded_at,
        )
        self.storage.update_dispute(
            dispute_id, lambda dispute: append_evidence(dispute, role, evidence)
        )

        self.thread.send_message(
            dispute_id,
            actor,
            f"New evidence uploaded: {file.name}",
            kind="evidence",
            attachments=[Attachment(
                url=evidence.url,
                type=evidence.type,
                name=evidence.name,
                size=evidence.size,
            )],
        )
        self.audit.record(
            dispute_id,
            "evidence_uploaded",
            actor,
            f"{role} uploaded evidence: {file.name}",
            new_value=evidence.model_dump(mode="json"),
        )
        return evidence
