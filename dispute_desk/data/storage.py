"""JSON file storage for disputes, thread messages, audit events and assessments."""

import json
import re
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from threading import RLock
from typing import Callable

from dispute_desk.config import settings
from dispute_desk.errors import NotFoundError
from dispute_desk.models.assessment import RiskAssessment
from dispute_desk.models.dispute import Dispute
from dispute_desk.models.event import DisputeEvent
from dispute_desk.models.message import DisputeMessage

# Record ids become file names; anything else could escape the data directory
_RECORD_ID = re.compile(r"[A-Za-z0-9_-]+")


@dataclass
class DisputeFilter:
    """Filters for listing disputes, applied at the storage level."""

    status: str | None = None
    priority: str | None = None
    assigned_to: str | None = None
    customer_id: str | None = None
    business_id: str | None = None
    search: str | None = None
    limit: int | None = None
    offset: int = 0

    def matches(self, dispute: Dispute) -> bool:
        if self.status and dispute.status != self.status:
            return False
        if self.priority and dispute.priority != self.priority:
            return False
        if self.assigned_to and dispute.assigned_to != self.assigned_to:
            return False
        if self.customer_id and dispute.customer_id != self.customer_id:
            return False
        if self.business_id and dispute.business_id != self.business_id:
            return False
        if self.search:
            needle = self.search.lower()
            haystack = [dispute.id, dispute.customer_name or "", dispute.customer_email or ""]
            if not any(needle in value.lower() for value in haystack):
                return False
        return True


class Storage:
    """File-backed persistence.

    Layout under ``data_dir``::

        disputes/<id>.json           one dispute record
        messages/<dispute_id>.json   the thread, in creation order
        events/<dispute_id>.jsonl    append-only audit trail
        assessments/<id>.json        risk assessment records

    Every read-modify-write goes through the storage lock, so concurrent
    writers in one process never interleave inside a single record.
    """

    def __init__(self, data_dir: Path | None = None):
        self.data_dir = Path(data_dir) if data_dir else settings.data_dir
        self.disputes_dir = self.data_dir / "disputes"
        self.messages_dir = self.data_dir / "messages"
        self.events_dir = self.data_dir / "events"
        self.assessments_dir = self.data_dir / "assessments"
        self._lock = RLock()
        for directory in (
            self.disputes_dir,
            self.messages_dir,
            self.events_dir,
            self.assessments_dir,
        ):
            directory.mkdir(parents=True, exist_ok=True)

    # -- helpers ----------------------------------------------------------

    @staticmethod
    def _path(directory: Path, record_id: str, suffix: str) -> Path:
        """Path of one record file.

        Raises:
            NotFoundError: If ``record_id`` cannot name a stored record
        """
        if not isinstance(record_id, str) or not _RECORD_ID.fullmatch(record_id):
            raise NotFoundError(f"No record with id {record_id!r}")
        return directory / f"{record_id}{suffix}"

    @staticmethod
    def _write_json(path: Path, payload) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, default=str)
        tmp.replace(path)

    @staticmethod
    def _read_json(path: Path):
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    # -- disputes ---------------------------------------------------------

    def save_dispute(self, dispute: Dispute) -> None:
        """Save a dispute record, replacing any previous version."""
        with self._lock:
            self._write_json(
                self._path(self.disputes_dir, dispute.id, ".json"),
                dispute.model_dump(mode="json"),
            )

    def get_dispute_by_id(self, dispute_id: str) -> Dispute | None:
        """Get a dispute by ID, or None if it does not exist."""
        try:
            path = self._path(self.disputes_dir, dispute_id, ".json")
        except NotFoundError:
            return None
        with self._lock:
            if not path.exists():
                return None
            return Dispute.model_validate(self._read_json(path))

    def update_dispute(
        self,
        dispute_id: str,
        mutate: Callable[[Dispute], Dispute],
    ) -> Dispute:
        """Atomically read, transform and write back one dispute.

        ``mutate`` receives the current record and returns the new one. It
        may raise to abort, in which case nothing is written.

        Raises:
            NotFoundError: If the dispute does not exist
        """
        with self._lock:
            current = self.get_dispute_by_id(dispute_id)
            if current is None:
                raise NotFoundError(f"Dispute {dispute_id} not found")
            updated = mutate(current)
            self.save_dispute(updated)
            return updated

    def get_disputes(self, filters: DisputeFilter | None = None) -> list[Dispute]:
        """Get disputes matching ``filters``, newest first, without paging."""
        with self._lock:
            disputes = [
                Dispute.model_validate(self._read_json(path))
                for path in self.disputes_dir.glob("*.json")
            ]
        if filters:
            disputes = [d for d in disputes if filters.matches(d)]
        disputes.sort(key=lambda d: d.created_at, reverse=True)
        return disputes

    def query_disputes(self, filters: DisputeFilter) -> tuple[list[Dispute], int]:
        """Get one page of matching disputes plus the total match count."""
        matching = self.get_disputes(filters)
        total = len(matching)
        start = max(filters.offset, 0)
        end = start + filters.limit if filters.limit is not None else None
        return matching[start:end], total

    # -- messages ---------------------------------------------------------

    def _thread_path(self, dispute_id: str) -> Path:
        return self._path(self.messages_dir, dispute_id, ".json")

    def get_messages(self, dispute_id: str) -> list[DisputeMessage]:
        """Get every message of a thread in creation order."""
        try:
            path = self._thread_path(dispute_id)
        except NotFoundError:
            return []
        with self._lock:
            if not path.exists():
                return []
            return [DisputeMessage.model_validate(m) for m in self._read_json(path)]

    def append_message(self, message: DisputeMessage) -> DisputeMessage:
        """Append a message to the end of its thread and return the stored copy.

        ``created_at`` is stamped under the lock and never precedes the
        previous message, so thread order and creation order agree.
        """
        with self._lock:
            thread = self.get_messages(message.dispute_id)
            created_at = datetime.now()
            if thread and thread[-1].created_at > created_at:
                created_at = thread[-1].created_at
            message = message.model_copy(update={"created_at": created_at})
            thread.append(message)
            self._write_json(
                self._thread_path(message.dispute_id),
                [m.model_dump(mode="json") for m in thread],
            )
            return message

    def update_messages(
        self,
        dispute_id: str,
        mutate: Callable[[DisputeMessage], DisputeMessage],
    ) -> list[DisputeMessage]:
        """Apply ``mutate`` to every message in a thread and write it back."""
        with self._lock:
            thread = [mutate(m) for m in self.get_messages(dispute_id)]
            self._write_json(
                self._thread_path(dispute_id),
                [m.model_dump(mode="json") for m in thread],
            )
            return thread

    # -- events -----------------------------------------------------------

    def append_event(self, event: DisputeEvent) -> None:
        """Append an audit event. Events are never rewritten."""
        with self._lock:
            path = self._path(self.events_dir, event.dispute_id, ".jsonl")
            with open(path, "a", encoding="utf-8") as f:
                f.write(event.model_dump_json() + "\n")

    def get_events(self, dispute_id: str) -> list[DisputeEvent]:
        """Get the audit trail of a dispute in creation order."""
        try:
            path = self._path(self.events_dir, dispute_id, ".jsonl")
        except NotFoundError:
            return []
        with self._lock:
            if not path.exists():
                return []
            with open(path, "r", encoding="utf-8") as f:
                return [
                    DisputeEvent.model_validate_json(line)
                    for line in f
                    if line.strip()
                ]

    # -- assessments ------------------------------------------------------

    def save_assessment(self, assessment: RiskAssessment) -> None:
        with self._lock:
            self._write_json(
                self._path(self.assessments_dir, assessment.id, ".json"),
                assessment.model_dump(mode="json"),
            )

    def get_assessment(self, assessment_id: str) -> RiskAssessment | None:
        try:
            path = self._path(self.assessments_dir, assessment_id, ".json")
        except NotFoundError:
            return None
        with self._lock:
            if not path.exists():
                return None
            return RiskAssessment.model_validate(self._read_json(path))

    # -- maintenance ------------------------------------------------------

    def reset(self) -> None:
        """Delete every stored record. Used by the CLI ``--reset`` flag."""
        with self._lock:
            for directory in (
                self.disputes_dir,
                self.messages_dir,
                self.events_dir,
                self.assessments_dir,
            ):
                shutil.rmtree(directory, ignore_errors=True)
                directory.mkdir(parents=True, exist_ok=True)
