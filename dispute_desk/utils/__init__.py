"""Utilities module - Logging, PII masking, resilience."""

from .pii import mask_pii, hash_user_id, redact_for_logging
from .logging import get_logger, AuditLogger
from .resilience import with_retry, call_with_timeout, RateLimiter, CircuitBreaker

__all__ = [
    "mask_pii",
    "hash_user_id",
    "redact_for_logging",
    "get_logger",
    "AuditLogger",
    "with_retry",
    "call_with_timeout",
    "RateLimiter",
    "CircuitBreaker",
]
