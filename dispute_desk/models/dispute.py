"""Dispute record model."""

from datetime import datetime
from typing import Any, Literal, get_args
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

DisputeReason = Literal[
    "duplicate",
    "fraudulent",
    "product_not_received",
    "product_unacceptable",
    "subscription_canceled",
    "unrecognized",
    "credit_not_processed",
    "general",
    "other",
]

DisputeStatus = Literal[
    "open",
    "pending_merchant",
    "pending_customer",
    "under_review",
    "evidence_required",
    "resolved",
    "won",
    "lost",
    "closed",
    "escalated",
]

DisputePriority = Literal["low", "medium", "high", "urgent"]

ResolutionOutcome = Literal[
    "full_refund",
    "partial_refund",
    "favor_merchant",
    "favor_customer",
    "no_action",
]

DISPUTE_REASONS: tuple[str, ...] = get_args(DisputeReason)
DISPUTE_STATUSES: tuple[str, ...] = get_args(DisputeStatus)
RESOLUTION_OUTCOMES: tuple[str, ...] = get_args(ResolutionOutcome)

TERMINAL_STATUSES = frozenset({"resolved", "won", "lost", "closed"})

# Statuses from which an ordinary message may still move the dispute along
AUTO_ADVANCE_STATUSES = frozenset({"open", "pending_merchant", "pending_customer"})

REASON_LABELS: dict[str, str] = {
    "duplicate": "Duplicate Charge",
    "fraudulent": "Fraudulent Transaction",
    "product_not_received": "Product Not Received",
    "product_unacceptable": "Product Unacceptable",
    "subscription_canceled": "Subscription Canceled",
    "unrecognized": "Unrecognized Charge",
    "credit_not_processed": "Credit Not Processed",
    "general": "General Dispute",
    "other": "Other",
}

STATUS_LABELS: dict[str, str] = {
    "open": "Open",
    "pending_merchant": "Awaiting Merchant",
    "pending_customer": "Awaiting Customer",
    "under_review": "Under Review",
    "evidence_required": "Evidence Required",
    "resolved": "Resolved",
    "won": "Won",
    "lost": "Lost",
    "closed": "Closed",
    "escalated": "Escalated",
}

OUTCOME_STATUS: dict[str, str] = {
    "full_refund": "won",
    "favor_customer": "won",
    "favor_merchant": "lost",
    "no_action": "lost",
    "partial_refund": "resolved",
}


def derive_priority(amount: int) -> DisputePriority:
    """Priority bucket for a disputed amount in minor currency units."""
    if amount >= 1_000_000:
        return "urgent"
    if amount >= 500_000:
        return "high"
    if amount >= 100_000:
        return "medium"
    return "low"


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def format_amount(currency: str, amount: int | None) -> str:
    """Human-readable amount, e.g. ``SLE 150,000``."""
    if amount is None:
        return f"{currency} -"
    return f"{currency} {amount:,}"


class Evidence(BaseModel):
    """A stored document submitted by one party. Never changed once recorded."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(description="Public URL of the stored file")
    type: str = Field(description="MIME content type")
    name: str = Field(description="Original file name")
    size: int | None = Field(default=None, description="Size in bytes")
    uploaded_at: datetime = Field(
        default_factory=datetime.now, description="When the file was uploaded"
    )


class Dispute(BaseModel):
    """A customer's formal challenge to a transaction."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="Unique dispute ID")

    # Parties
    customer_id: str = Field(min_length=1, description="Customer who filed the dispute")
    customer_name: str | None = Field(default=None, description="Customer display name")
    customer_email: str | None = Field(default=None, description="Customer contact email")
    merchant_id: str | None = Field(default=None, description="Merchant user, if linked")
    business_id: str | None = Field(default=None, description="Merchant business, if linked")
    business_name: str | None = Field(default=None, description="Business display name")
    assigned_to: str | None = Field(default=None, description="Assigned administrator")

    # Subject
    transaction_id: str | None = Field(default=None, description="Disputed transaction")
    payment_id: str | None = Field(default=None, description="Disputed payment")
    amount: int = Field(ge=0, description="Disputed amount in minor units")
    currency: str = Field(default="SLE", description="Currency code")

    # Classification
    reason: DisputeReason = Field(description="Reason code")
    description: str = Field(default="", description="Customer's statement")

    # Lifecycle
    status: DisputeStatus = Field(default="open", description="Current dispute status")
    priority: DisputePriority = Field(default="low", description="Handling priority")
    resolution: ResolutionOutcome | None = Field(default=None, description="Resolution outcome")
    resolution_amount: int | None = Field(
        default=None, ge=0, description="Amount awarded by the resolution"
    )
    resolution_notes: str | None = Field(default=None, description="Notes from resolution")
    resolved_by: str | None = Field(default=None, description="Who resolved the dispute")
    resolved_at: datetime | None = Field(default=None, description="When it was resolved")

    merchant_response: str | None = Field(default=None, description="Merchant's formal response")
    merchant_responded_at: datetime | None = Field(
        default=None, description="When the merchant first responded"
    )

    # Evidence (append-only)
    customer_evidence: list[Evidence] = Field(
        default_factory=list, description="Evidence submitted by the customer"
    )
    merchant_evidence: list[Evidence] = Field(
        default_factory=list, description="Evidence submitted by the merchant"
    )

    # Risk
    fraud_risk_score: float | None = Field(
        default=None, ge=0, le=100, description="Fraud risk score from the assessment"
    )
    ai_analysis_id: str | None = Field(default=None, description="Linked risk assessment")

    # Timing
    created_at: datetime = Field(default_factory=datetime.now, description="When filed")
    updated_at: datetime = Field(default_factory=datetime.now, description="Last change")
    due_date: datetime | None = Field(default=None, description="Resolution due date")
    merchant_deadline: datetime | None = Field(
        default=None, description="Deadline for the merchant to respond"
    )

    metadata: dict[str, Any] = Field(default_factory=dict, description="Free-form extras")

    @model_validator(mode="after")
    def _check_resolution_fields(self) -> "Dispute":
        if (self.resolved_at is None) != (self.resolved_by is None):
            raise ValueError("resolved_at and resolved_by must be set together")
        if self.resolution is not None and self.resolved_at is None:
            raise ValueError("a resolution outcome requires resolved_at")
        if self.resolution_amount is not None and self.resolution is None:
            raise ValueError("resolution_amount requires a resolution outcome")
        return self

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    def evidence_for(self, role: str) -> list[Evidence]:
        """Return the evidence list belonging to ``role``."""
        if role == "customer":
            return self.customer_evidence
        if role == "merchant":
            return self.merchant_evidence
        raise ValueError(f"No evidence list for role: {role}")

    def to_display_dict(self) -> dict:
        """Return a dictionary suitable for display."""
        return {
            "id": self.id,
            "status": STATUS_LABELS[self.status],
            "priority": self.priority,
            "reason": REASON_LABELS[self.reason],
            "amount": format_amount(self.currency, self.amount),
            "customer": self.customer_name or self.customer_id,
            "business": self.business_name or self.business_id or "N/A",
            "created_at": self.created_at.strftime("%Y-%m-%d %H:%M"),
            "description": self.description[:100] + "..." if len(self.description) > 100 else self.description,
        }
