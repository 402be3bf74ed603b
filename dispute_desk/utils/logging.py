"""Structured audit logging with PII redaction."""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any

from dispute_desk.utils.pii import mask_pii, hash_user_id, redact_for_logging


def get_logger(name: str, level: str = "INFO") -> logging.Logger:
    """Get a configured logger instance."""
    logger = logging.getLogger(f"dispute_desk.{name}")

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(getattr(logging, level.upper()))
    return logger


class AuditLogger:
    """Daily JSONL audit log of dispute activity with PII protection.

    Message bodies and free-text descriptions are masked with the regex pass
    only; the NLP pass is reserved for text that leaves the process.
    """

    def __init__(self, log_dir: Path | None = None):
        self.log_dir = log_dir or Path("logs")
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()
        self._logger = get_logger("audit")

    def _get_log_file(self) -> Path:
        """Get the current audit log file path."""
        date_str = datetime.now().strftime("%Y-%m-%d")
        return self.log_dir / f"audit_{date_str}.jsonl"

    def _write_entry(self, entry: dict):
        """Write an audit entry to the log file."""
        entry["timestamp"] = datetime.now().isoformat()

        with self._lock:
            with open(self._get_log_file(), "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, default=str) + "\n")

    def log_dispute_event(
        self,
        dispute_id: str,
        event_type: str,
        actor_id: str | None,
        actor_role: str | None,
        description: str,
    ):
        """Log a dispute audit event."""
        entry = {
            "event": "dispute_event",
            "dispute_id": dispute_id,
            "event_type": event_type,
            "actor_hash": hash_user_id(actor_id) if actor_id else None,
            "actor_role": actor_role,
            "description": mask_pii(description, use_presidio=False),
        }
        self._write_entry(entry)
        self._logger.info(f"Dispute {dispute_id}: {event_type}")

    def log_message(
        self,
        dispute_id: str,
        message_id: str,
        sender_role: str,
        kind: str,
        content: str,
        is_internal: bool,
    ):
        """Log a thread message without its full body."""
        entry = {
            "event": "message",
            "dispute_id": dispute_id,
            "message_id": message_id,
            "sender_role": sender_role,
            "kind": kind,
            "is_internal": is_internal,
            "content_length": len(content),
            "content_preview": mask_pii(content[:120], use_presidio=False),
        }
        self._write_entry(entry)
        self._logger.debug(f"Message {message_id} ({kind}) on dispute {dispute_id}")

    def log_notification(
        self,
        user_id: str,
        event_kind: str,
        payload: dict[str, Any],
        error: str | None = None,
    ):
        """Log a notification attempt and its outcome."""
        entry = {
            "event": "notification",
            "user_hash": hash_user_id(user_id),
            "event_kind": event_kind,
            "payload": redact_for_logging(payload),
            "error": error,
        }
        self._write_entry(entry)
        if error:
            self._logger.warning(f"Notification {event_kind} failed: {error}")
        else:
            self._logger.debug(f"Notification {event_kind} dispatched")

    def log_degraded(self, dependency: str, details: str, dispute_id: str | None = None):
        """Log a best-effort collaborator failure."""
        entry = {
            "event": "dependency_degraded",
            "dependency": dependency,
            "dispute_id": dispute_id,
            "details": mask_pii(details, use_presidio=False),
        }
        self._write_entry(entry)
        self._logger.warning(f"{dependency} degraded: {details}")

    def log_security_event(
        self,
        event_type: str,
        details: str,
        severity: str = "warning",
    ):
        """Log a security-related event."""
        entry = {
            "event": "security",
            "event_type": event_type,
            "details": mask_pii(details, use_presidio=False),
            "severity": severity,
        }
        self._write_entry(entry)
        log_method = getattr(self._logger, severity.lower(), self._logger.warning)
        log_method(f"Security event: {event_type}")
