"""PII masking for audit logs and for text sent to the assessment model.

Two passes are available. The regex pass is cheap and catches structured
identifiers (cards, emails, phone and account numbers). The Presidio pass adds
NLP detection of names and contact details and is only used for text that
leaves the process.
"""

import hashlib
import re
from functools import lru_cache

from presidio_analyzer import AnalyzerEngine, RecognizerResult
from presidio_anonymizer import AnonymizerEngine
from presidio_anonymizer.entities import OperatorConfig

# Entity types worth hiding from logs and the assessment model.
# Locations and dates are kept: they matter for delivery disputes.
DISPUTE_ENTITIES = [
    "CREDIT_CARD",
    "IBAN_CODE",
    "US_BANK_NUMBER",
    "EMAIL_ADDRESS",
    "PHONE_NUMBER",
    "IP_ADDRESS",
    "PERSON",
]

# Replacement tokens shared by both passes
_TOKENS = {
    "EMAIL_ADDRESS": "[REDACTED_EMAIL]",
    "PHONE_NUMBER": "[REDACTED_PHONE]",
}

_OPERATORS = {
    entity: OperatorConfig("replace", {"new_value": _TOKENS.get(entity, f"[REDACTED_{entity}]")})
    for entity in DISPUTE_ENTITIES
}
_OPERATORS["DEFAULT"] = OperatorConfig("replace", {"new_value": "[REDACTED]"})

# Applied in order; card numbers first so the account rule does not swallow them.
_REGEX_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r'\b(?:\d{4}[-\s]?){3}\d{4}\b'), '[REDACTED_CREDIT_CARD]'),
    (re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'), _TOKENS["EMAIL_ADDRESS"]),
    # Sierra Leone mobile numbers: +232 / 00232 / 0 prefix, 8 digits
    (re.compile(r'(?:\+|\b00)232[-\s]?\d{2}[-\s]?\d{3}[-\s]?\d{3}\b'), _TOKENS["PHONE_NUMBER"]),
    (re.compile(r'\b0\d{2}[-\s]?\d{3}[-\s]?\d{3}\b'), _TOKENS["PHONE_NUMBER"]),
    (re.compile(r'\b(?:\+1[-.\s]?)?\(?[0-9]{3}\)?[-.\s]?[0-9]{3}[-.\s]?[0-9]{4}\b'), _TOKENS["PHONE_NUMBER"]),
    (re.compile(r'\b\d{10,17}\b'), '[REDACTED_ACCOUNT]'),
]

SENSITIVE_FIELDS = frozenset({
    "customer_email",
    "customer_name",
    "customer_phone",
    "email",
    "phone",
    "password",
    "api_key",
    "token",
    "secret",
})


@lru_cache(maxsize=1)
def _get_analyzer() -> AnalyzerEngine:
    # Loading the spaCy model takes seconds; do it on first use only
    return AnalyzerEngine()


@lru_cache(maxsize=1)
def _get_anonymizer() -> AnonymizerEngine:
    return AnonymizerEngine()


def hash_user_id(user_id: str) -> str:
    """Short stable hash of a user ID for audit entries."""
    return hashlib.sha256(user_id.encode()).hexdigest()[:12]


def _mask_pii_regex(text: str) -> str:
    """Replace card, email, phone and account numbers. Amounts are left alone."""
    for pattern, token in _REGEX_RULES:
        text = pattern.sub(token, text)
    return text


def _mask_pii_presidio(text: str) -> str:
    """Replace the entities Presidio finds in ``text``."""
    if not text:
        return text

    results: list[RecognizerResult] = _get_analyzer().analyze(
        text=text,
        entities=DISPUTE_ENTITIES,
        language="en",
    )
    if not results:
        return text

    return _get_anonymizer().anonymize(
        text=text,
        analyzer_results=results,
        operators=_OPERATORS,
    ).text


def mask_pii(text: str, use_presidio: bool = True) -> str:
    """Mask PII in free text.

    Args:
        text: Message body, statement or log detail
        use_presidio: Also run the NLP pass. Audit log lines pass False.

    Returns:
        The masked text; empty input is returned as is
    """
    if not text:
        return text

    masked = _mask_pii_regex(text)
    return _mask_pii_presidio(masked) if use_presidio else masked


def redact_for_logging(data: dict) -> dict:
    """Copy of ``data`` with sensitive keys blanked, recursing into dicts and lists."""

    def _redact(value):
        if isinstance(value, dict):
            return {
                k: "[REDACTED]" if k.lower() in SENSITIVE_FIELDS else _redact(v)
                for k, v in value.items()
            }
        if isinstance(value, list):
            return [_redact(v) for v in value]
        return value

    return _redact(data)
