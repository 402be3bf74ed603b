"""Shared fixtures and fakes for the dispute desk tests."""

import shutil
import tempfile
from pathlib import Path

import pytest

from dispute_desk.data.storage import Storage
from dispute_desk.errors import StorageError
from dispute_desk.models.actor import Actor
from dispute_desk.models.assessment import DisputeSnapshot, RiskAssessment, SuggestedResponse
from dispute_desk.services.background import BackgroundRunner
from dispute_desk.services.disputes import DisputeService
from dispute_desk.services.evidence_store import EvidenceStore, StoredObject
from dispute_desk.services.notifications import NotificationDispatcher
from dispute_desk.utils.logging import AuditLogger


class RecordingDispatcher(NotificationDispatcher):
    """Collects every notice instead of delivering it."""

    def __init__(self):
        self.sent: list[tuple[str, str, dict]] = []

    def notify(self, user_id, event_kind, payload):
        self.sent.append((user_id, event_kind, payload))

    def of_kind(self, kind: str) -> list[tuple[str, str, dict]]:
        return [n for n in self.sent if n[1] == kind]


class FailingDispatcher(NotificationDispatcher):
    """Raises on every call, like a notification service that is down."""

    def __init__(self):
        self.attempts = 0

    def notify(self, user_id, event_kind, payload):
        self.attempts += 1
        raise ConnectionError("notification service unavailable")


class FakeRiskClient:
    """Stands in for the LLM-backed client."""

    def __init__(self, configured: bool = True, error: Exception | None = None, score: float = 35.0):
        self.configured = configured
        self.error = error
        self.score = score
        self.snapshots: list[DisputeSnapshot] = []

    def is_configured(self) -> bool:
        return self.configured

    def analyze(self, snapshot: DisputeSnapshot) -> RiskAssessment:
        self.snapshots.append(snapshot)
        if self.error:
            raise self.error
        return RiskAssessment(
            dispute_id=snapshot.id,
            fraud_risk_score=self.score,
            confidence_score=80,
            recommendation="needs_review",
            reasoning="Delivery confirmation is missing.",
        )

    def suggest_response(self, snapshot: DisputeSnapshot) -> SuggestedResponse:
        self.snapshots.append(snapshot)
        if self.error:
            raise self.error
        return SuggestedResponse(
            suggested_response="We shipped the order and attach the courier receipt.",
            evidence_to_include=["courier receipt"],
            strength_assessment="moderate",
        )


class FailingEvidenceStore(EvidenceStore):
    def store(self, data, content_type, suggested_name, path_hint):
        raise StorageError("evidence bucket unavailable")


class RecordingEvidenceStore(EvidenceStore):
    def __init__(self):
        self.calls: list[tuple[str, str]] = []

    def store(self, data, content_type, suggested_name, path_hint):
        self.calls.append((suggested_name, path_hint))
        return StoredObject(
            url=f"https://files.example.com/{path_hint}/{suggested_name}",
            size=len(data),
        )


@pytest.fixture
def temp_data_dir():
    """Create a temporary data directory for tests."""
    temp_dir = Path(tempfile.mkdtemp())
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def storage(temp_data_dir):
    return Storage(temp_data_dir)


@pytest.fixture
def audit_logger(temp_data_dir):
    return AuditLogger(log_dir=temp_data_dir / "logs")


@pytest.fixture
def runner(audit_logger):
    runner = BackgroundRunner(max_workers=2, audit_logger=audit_logger)
    yield runner
    runner.shutdown()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def risk_client():
    return FakeRiskClient()


@pytest.fixture
def evidence_store():
    return RecordingEvidenceStore()


@pytest.fixture
def service(storage, risk_client, dispatcher, evidence_store, runner, audit_logger):
    """A dispute service wired to fakes, with every collaborator inspectable."""
    return DisputeService(
        storage=storage,
        risk_client=risk_client,
        dispatcher=dispatcher,
        evidence_store=evidence_store,
        runner=runner,
        audit_logger=audit_logger,
    )


@pytest.fixture
def customer():
    return Actor(id="cust_001", role="customer", name="Aminata Kamara")


@pytest.fixture
def merchant():
    return Actor(id="merch_001", role="merchant", name="Lumley Electronics")


@pytest.fixture
def admin():
    return Actor(id="admin_001", role="admin", name="Support Desk")


@pytest.fixture
def file_dispute(service, customer):
    """Factory filing a dispute from ``customer`` against ``merch_001``."""

    def _file(**overrides):
        fields = {
            "customer_id": customer.id,
            "reason": "product_not_received",
            "description": "I paid for a phone charger that never arrived.",
            "amount": 150_000,
            "currency": "SLE",
            "merchant_id": "merch_001",
            "business_id": "biz_001",
            "customer_name": customer.name,
            "customer_email": "aminata@example.com",
            "business_name": "Lumley Electronics",
        }
        fields.update(overrides)
        return service.create(customer, **fields)

    return _file


@pytest.fixture
def dispute(service, file_dispute):
    """A freshly filed dispute with background work finished."""
    filed = file_dispute()
    service.wait_for_background()
    return filed
