"""Services module - dispute lifecycle, threads, evidence and notifications."""

from .audit import AuditTrail
from .background import BackgroundRunner
from .disputes import DisputeService
from .evidence import EvidenceLedger
from .evidence_store import EvidenceFile, EvidenceStore, LocalEvidenceStore
from .messages import MessageThread
from .notifications import NotificationDispatcher, NotificationService, OutboxDispatcher

__all__ = [
    "AuditTrail",
    "BackgroundRunner",
    "DisputeService",
    "EvidenceLedger",
    "EvidenceFile",
    "EvidenceStore",
    "LocalEvidenceStore",
    "MessageThread",
    "NotificationDispatcher",
    "NotificationService",
    "OutboxDispatcher",
]
