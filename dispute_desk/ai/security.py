"""Sanitization of party-supplied text."""

import re
from typing import NamedTuple

from dispute_desk.utils.logging import AuditLogger


class SanitizationResult(NamedTuple):
    """Result of input sanitization."""
    text: str
    was_modified: bool
    warnings: list[str]


# Customer statements and merchant replies are forwarded to the assessment
# model, so instruction-like text is flagged for the audit log.
SUSPICIOUS_PATTERNS = [
    (r'ignore\s+(all\s+)?(previous|above|prior)\s+(instructions?|prompts?)', "instruction_override"),
    (r'disregard\s+(all\s+)?(previous|above|prior)', "instruction_override"),
    (r'(rate|score|mark)\s+(this|the)\s+(dispute|claim)\s+(as\s+)?(low|zero|0)', "score_manipulation"),
    (r'(recommend|rule|decide)\s+in\s+(my|our)\s+favou?r', "score_manipulation"),
    (r'you\s+are\s+now\s+a', "role_manipulation"),
    (r'<\|?(system|assistant|user)\|?>', "delimiter_injection"),
    (r'```\s*(system|assistant|user)\s*\n', "delimiter_injection"),
]

DANGEROUS_CHARS = {
    '\x00': '',  # Null byte
    '\x1b': '',  # Escape character
}

MAX_LENGTH = 5000


def sanitize_text(
    text: str,
    audit_logger: AuditLogger | None = None,
    max_length: int = MAX_LENGTH,
) -> SanitizationResult:
    """Clean a message body or dispute description.

    Removes control characters, flags suspicious patterns, collapses runs of
    spaces and truncates overly long input.

    Args:
        text: The party-supplied text
        audit_logger: Where to record suspicious input, if anywhere
        max_length: Truncation limit

    Returns:
        SanitizationResult with sanitized text and warnings
    """
    warnings = []
    was_modified = False

    sanitized = text
    for char, replacement in DANGEROUS_CHARS.items():
        if char in sanitized:
            sanitized = sanitized.replace(char, replacement)
            was_modified = True
            warnings.append(f"Removed dangerous character: {repr(char)}")

    for pattern, category in SUSPICIOUS_PATTERNS:
        if re.search(pattern, sanitized, re.IGNORECASE):
            warnings.append(f"Suspicious pattern detected: {category}")
            if audit_logger:
                audit_logger.log_security_event(
                    event_type=f"suspicious_input_{category}",
                    details="Pattern matched in dispute text",
                    severity="warning",
                )

    normalized = re.sub(r' {3,}', '  ', sanitized)
    if normalized != sanitized:
        sanitized = normalized
        was_modified = True

    if len(sanitized) > max_length:
        original_length = len(sanitized)
        sanitized = sanitized[:max_length] + "... [truncated]"
        was_modified = True
        warnings.append(f"Input truncated from {original_length} to {max_length} characters")
        if audit_logger:
            audit_logger.log_security_event(
                event_type="input_truncated",
                details=f"Input was {original_length} chars, truncated to {max_length}",
                severity="info",
            )

    return SanitizationResult(
        text=sanitized,
        was_modified=was_modified,
        warnings=warnings,
    )
