"""Tests for the evidence ledger and the local evidence store."""

import pytest

from dispute_desk.errors import NotFoundError, PermissionDeniedError, StorageError, ValidationError
from dispute_desk.models.actor import Actor
from dispute_desk.services.disputes import DisputeService
from dispute_desk.services.evidence_store import EvidenceFile, LocalEvidenceStore

from conftest import FailingEvidenceStore, FakeRiskClient


def pdf(name="receipt.pdf", size=128):
    return EvidenceFile(name=name, content_type="application/pdf", data=b"%" * size)


class TestUploadEvidence:
    """Tests for uploading evidence through the service."""

    def test_uploads_append_only(self, service, dispute, customer):
        """Each successful upload adds one entry and leaves earlier ones untouched."""
        uploaded = []
        for i in range(3):
            uploaded.append(service.upload_evidence(dispute.id, pdf(f"photo_{i}.jpg"), customer))
            stored = service.get_dispute(dispute.id).customer_evidence
            assert len(stored) == i + 1
            assert stored == uploaded

    def test_goes_to_uploader_list_only(self, service, dispute, merchant):
        evidence = service.upload_evidence(dispute.id, pdf("waybill.pdf"), merchant)
        stored = service.get_dispute(dispute.id)
        assert stored.merchant_evidence == [evidence]
        assert stored.customer_evidence == []

    def test_path_layout(self, service, dispute, customer, evidence_store):
        service.upload_evidence(dispute.id, pdf("receipt.pdf"), customer)
        suggested_name, path_hint = evidence_store.calls[0]
        assert path_hint == f"{dispute.id}/customer"
        timestamp, _, name = suggested_name.partition("_")
        assert timestamp.isdigit()
        assert name == "receipt.pdf"

    def test_message_and_event(self, service, dispute, customer):
        evidence = service.upload_evidence(dispute.id, pdf("receipt.pdf", size=512), customer)

        message = service.get_messages(dispute.id)[-1]
        assert message.kind == "evidence"
        assert message.sender_role == "customer"
        assert len(message.attachments) == 1
        assert message.attachments[0].url == evidence.url
        assert message.attachments[0].size == 512

        event = service.get_events(dispute.id)[-1]
        assert event.event_type == "evidence_uploaded"
        assert event.new_value["name"] == "receipt.pdf"

    def test_evidence_does_not_transition(self, service, dispute, merchant):
        service.upload_evidence(dispute.id, pdf(), merchant)
        assert service.get_dispute(dispute.id).status == "open"

    def test_other_merchant_cannot_upload(self, service, dispute, evidence_store):
        with pytest.raises(PermissionDeniedError):
            service.upload_evidence(dispute.id, pdf(), Actor(id="merch_999", role="merchant"))
        assert evidence_store.calls == []
        assert service.get_dispute(dispute.id).merchant_evidence == []

    def test_admin_cannot_upload(self, service, dispute, admin):
        with pytest.raises(ValidationError):
            service.upload_evidence(dispute.id, pdf(), admin)

    def test_empty_file(self, service, dispute, customer):
        with pytest.raises(ValidationError):
            service.upload_evidence(dispute.id, pdf(size=0), customer)

    def test_oversized_file(self, service, dispute, customer, evidence_store):
        service.evidence.max_bytes = 100
        with pytest.raises(ValidationError):
            service.upload_evidence(dispute.id, pdf(size=101), customer)
        assert evidence_store.calls == []

    def test_missing_dispute(self, service, customer, evidence_store):
        with pytest.raises(NotFoundError):
            service.upload_evidence("missing", pdf(), customer)
        assert evidence_store.calls == []


class TestStoreFailure:
    """A failing evidence store leaves the dispute untouched."""

    def test_no_mutation(self, storage, dispatcher, runner, audit_logger, customer):
        service = DisputeService(
            storage=storage,
            risk_client=FakeRiskClient(configured=False),
            dispatcher=dispatcher,
            evidence_store=FailingEvidenceStore(),
            runner=runner,
            audit_logger=audit_logger,
        )
        dispute = service.create(
            customer,
            customer_id=customer.id,
            reason="product_unacceptable",
            description="Wrong colour",
            amount=80_000,
        )
        before = service.get_dispute(dispute.id)
        messages_before = service.get_messages(dispute.id)
        events_before = service.get_events(dispute.id)

        with pytest.raises(StorageError):
            service.upload_evidence(dispute.id, pdf(), customer)

        assert service.get_dispute(dispute.id) == before
        assert service.get_messages(dispute.id) == messages_before
        assert service.get_events(dispute.id) == events_before


class TestLocalEvidenceStore:
    """Tests for the file-backed evidence store."""

    def test_writes_file(self, temp_data_dir):
        store = LocalEvidenceStore(root=temp_data_dir / "evidence", base_url="https://cdn.example.com/")
        stored = store.store(b"hello", "text/plain", "1700000000000_note.txt", "d1/customer")

        assert stored.size == 5
        assert stored.url == "https://cdn.example.com/d1/customer/1700000000000_note.txt"
        assert (temp_data_dir / "evidence" / "d1" / "customer" / "1700000000000_note.txt").read_bytes() == b"hello"

    def test_unsafe_names_are_cleaned(self, temp_data_dir):
        store = LocalEvidenceStore(root=temp_data_dir / "evidence", base_url="file://evidence")
        stored = store.store(b"x", "text/plain", "../../etc/passwd", "d1/../customer")

        assert ".." not in stored.url
        assert all(p.is_relative_to(temp_data_dir / "evidence") for p in (temp_data_dir / "evidence").rglob("*"))

    def test_write_failure_raises_storage_error(self, temp_data_dir):
        blocker = temp_data_dir / "blocked"
        blocker.write_text("not a directory")
        store = LocalEvidenceStore(root=blocker, base_url="file://evidence")
        with pytest.raises(StorageError):
            store.store(b"x", "text/plain", "a.txt", "d1/customer")
