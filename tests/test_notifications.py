"""Tests for notification rendering, delivery and the background runner."""

import json
import threading
import time

import pytest

from dispute_desk.models.dispute import Dispute
from dispute_desk.services.background import BackgroundRunner
from dispute_desk.services.notifications import (
    NotificationService,
    OutboxDispatcher,
    render_notification,
)

from conftest import FailingDispatcher, RecordingDispatcher


@pytest.fixture
def sample_dispute():
    return Dispute(
        customer_id="cust_001",
        customer_name="Aminata Kamara",
        merchant_id="merch_001",
        amount=150_000,
        currency="SLE",
        reason="product_not_received",
    )


def read_audit_entries(log_dir):
    entries = []
    for path in sorted(log_dir.glob("audit_*.jsonl")):
        with open(path, "r", encoding="utf-8") as f:
            entries.extend(json.loads(line) for line in f if line.strip())
    return entries


class TestRenderNotification:
    """Tests for notice templates."""

    def test_merchant_filed_notice(self, sample_dispute):
        payload = render_notification("dispute_filed", "merchant", sample_dispute)
        assert payload["title"] == "New Dispute Filed"
        assert "Aminata Kamara" in payload["message"]
        assert "SLE 150,000" in payload["message"]
        assert "7 days" in payload["message"]
        assert payload["action_url"] == f"/merchant/disputes/{sample_dispute.id}"
        assert payload["priority"] == "high"

    def test_customer_links_to_own_page(self, sample_dispute):
        payload = render_notification("dispute_reopened", "customer", sample_dispute)
        assert payload["action_url"] == f"/disputes/{sample_dispute.id}"

    def test_context_overrides_template_values(self, sample_dispute):
        payload = render_notification(
            "dispute_escalated", "customer", sample_dispute, reason="Merchant unresponsive"
        )
        assert payload["message"].endswith("Reason: Merchant unresponsive")
        assert payload["priority"] == "urgent"
        assert payload["details"] == {"reason": "Merchant unresponsive"}


class TestNotificationService:
    """Tests for best-effort delivery."""

    def test_notify_parties(self, runner, sample_dispute):
        dispatcher = RecordingDispatcher()
        notifications = NotificationService(dispatcher, runner)

        assert notifications.notify_parties("dispute_status_changed", sample_dispute) == 2
        runner.drain()
        assert sorted(n[0] for n in dispatcher.sent) == ["cust_001", "merch_001"]

    def test_customer_only_without_merchant(self, runner, sample_dispute):
        dispatcher = RecordingDispatcher()
        notifications = NotificationService(dispatcher, runner)
        no_merchant = sample_dispute.model_copy(update={"merchant_id": None})

        assert notifications.notify_parties("dispute_resolved", no_merchant, resolution="Refunded") == 1

    def test_dispatcher_failure_is_logged(self, runner, audit_logger, sample_dispute):
        dispatcher = FailingDispatcher()
        notifications = NotificationService(dispatcher, runner, audit_logger)

        notifications.send("cust_001", "dispute_reopened", "customer", sample_dispute)
        runner.drain()

        assert dispatcher.attempts == 1
        failures = [e for e in read_audit_entries(audit_logger.log_dir) if e["event"] == "notification"]
        assert len(failures) == 1
        assert "unavailable" in failures[0]["error"]
        assert failures[0]["user_hash"] != "cust_001"


class TestOutboxDispatcher:
    """Tests for the JSONL outbox."""

    def test_appends_in_order(self, temp_data_dir):
        outbox = OutboxDispatcher(temp_data_dir / "outbox.jsonl")
        outbox.notify("cust_001", "dispute_filed", {"title": "first"})
        outbox.notify("merch_001", "dispute_resolved", {"title": "second"})

        with open(temp_data_dir / "outbox.jsonl", "r", encoding="utf-8") as f:
            records = [json.loads(line) for line in f]
        assert [r["payload"]["title"] for r in records] == ["first", "second"]
        assert records[1]["user_id"] == "merch_001"
        assert records[1]["event_kind"] == "dispute_resolved"


class TestBackgroundRunner:
    """Tests for fire-and-forget execution."""

    def test_returns_before_task_finishes(self, runner):
        started = threading.Event()
        release = threading.Event()

        def slow():
            started.set()
            release.wait(5)

        future = runner.submit(slow)
        assert started.wait(5)
        assert not future.done()
        release.set()
        runner.drain()
        assert future.done()

    def test_failures_are_contained(self, runner, audit_logger):
        def broken():
            raise ValueError("boom")

        future = runner.submit(broken, name="broken_task", dispute_id="d1")
        runner.drain()

        assert future.exception() is None
        degraded = [e for e in read_audit_entries(audit_logger.log_dir) if e["event"] == "dependency_degraded"]
        assert degraded[0]["dependency"] == "broken_task"
        assert degraded[0]["dispute_id"] == "d1"
        assert "boom" in degraded[0]["details"]

    def test_timeout_is_degraded(self, runner, audit_logger):
        runner.submit(time.sleep, 1.0, name="slow_call", timeout=0.05)
        runner.drain()

        degraded = [e for e in read_audit_entries(audit_logger.log_dir) if e["event"] == "dependency_degraded"]
        assert degraded[0]["dependency"] == "slow_call"
        assert "timed out" in degraded[0]["details"]

    def test_drain_without_tasks(self, audit_logger):
        runner = BackgroundRunner(max_workers=1, audit_logger=audit_logger)
        runner.drain()
        runner.shutdown()
