"""Tests for PII masking utilities."""

import importlib.util

import pytest
from dispute_desk.utils.pii import (
    _mask_pii_presidio,
    _mask_pii_regex,
    hash_user_id,
    mask_pii,
    redact_for_logging,
)

requires_spacy_model = pytest.mark.skipif(
    importlib.util.find_spec("en_core_web_lg") is None,
    reason="Presidio needs the en_core_web_lg spaCy model",
)


class TestMaskPiiRegex:
    """Tests for regex-based PII masking."""

    def test_masks_credit_card_with_dashes(self):
        result = _mask_pii_regex("Card: 4111-1111-1111-1111")
        assert "[REDACTED_CREDIT_CARD]" in result

    def test_masks_credit_card_with_spaces(self):
        result = _mask_pii_regex("Card: 4111 1111 1111 1111")
        assert "[REDACTED_CREDIT_CARD]" in result

    def test_masks_email(self):
        result = _mask_pii_regex("Email: test@example.com")
        assert result == "Email: [REDACTED_EMAIL]"

    def test_masks_international_sierra_leone_number(self):
        result = _mask_pii_regex("Call +232 76 123 456 after 5pm")
        assert "76 123 456" not in result
        assert "[REDACTED_PHONE]" in result

    def test_masks_local_sierra_leone_number(self):
        result = _mask_pii_regex("Orange money 076-123-456")
        assert result == "Orange money [REDACTED_PHONE]"

    def test_masks_us_phone(self):
        result = _mask_pii_regex("Phone: (555) 123-4567")
        assert "[REDACTED_PHONE]" in result

    def test_masks_account_number(self):
        result = _mask_pii_regex("Account 1234567890123")
        assert result == "Account [REDACTED_ACCOUNT]"

    def test_keeps_amounts(self):
        text = "Refund of SLE 150,000 for order 4521"
        assert _mask_pii_regex(text) == text


class TestMaskPii:
    """Tests for the hybrid mask_pii function."""

    def test_presidio_disabled(self):
        text = "John Smith paid with card 4111-1111-1111-1111"
        result = mask_pii(text, use_presidio=False)
        assert "4111-1111-1111-1111" not in result
        assert "John Smith" in result

    def test_empty_returns_empty(self):
        assert mask_pii("", use_presidio=False) == ""
        assert mask_pii(None) is None

    @requires_spacy_model
    def test_hybrid_masks_names(self):
        result = mask_pii("John Smith paid with card 4111-1111-1111-1111")
        assert "John Smith" not in result
        assert "4111-1111-1111-1111" not in result


@requires_spacy_model
class TestMaskPiiPresidio:
    """Tests for Presidio-based PII masking."""

    def test_masks_person_names(self):
        result = _mask_pii_presidio("John Smith made a purchase")
        assert "John Smith" not in result
        assert "[REDACTED_PERSON]" in result

    def test_masks_email(self):
        result = _mask_pii_presidio("Contact me at john.doe@example.com")
        assert "john.doe@example.com" not in result

    def test_keeps_locations(self):
        result = _mask_pii_presidio("The parcel was left in Freetown")
        assert "Freetown" in result

    def test_no_pii_returns_unchanged(self):
        text = "The parcel never arrived"
        assert _mask_pii_presidio(text) == text


class TestLoggingHelpers:
    def test_hash_user_id_is_stable(self):
        assert hash_user_id("cust_001") == hash_user_id("cust_001")
        assert hash_user_id("cust_001") != hash_user_id("cust_002")
        assert len(hash_user_id("cust_001")) == 12

    def test_redact_for_logging(self):
        redacted = redact_for_logging({
            "dispute_id": "d1",
            "customer_email": "a@example.com",
            "details": {"customer_name": "Aminata", "amount": 10},
        })
        assert redacted["dispute_id"] == "d1"
        assert redacted["customer_email"] == "[REDACTED]"
        assert redacted["details"] == {"customer_name": "[REDACTED]", "amount": 10}
