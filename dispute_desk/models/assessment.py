"""Risk assessment models exchanged with the assessment client."""

from datetime import datetime
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field


class DisputeSnapshot(BaseModel):
    """The salient fields of a dispute sent out for assessment."""

    id: str = Field(description="Dispute ID")
    transaction_id: str = Field(default="", description="Disputed transaction ID")
    amount: int = Field(description="Disputed amount in minor units")
    currency: str = Field(description="Currency code")
    transaction_date: datetime = Field(description="When the dispute was filed")
    reason: str = Field(description="Reason code")
    customer_statement: str = Field(default="", description="Customer's description")
    merchant_response: str | None = Field(default=None, description="Merchant's response, if any")
    merchant_name: str = Field(default="Unknown", description="Merchant display name")
    business_name: str = Field(default="Unknown", description="Business display name")
    customer_evidence: list[str] = Field(
        default_factory=list, description="Names of customer evidence files"
    )
    merchant_evidence: list[str] = Field(
        default_factory=list, description="Names of merchant evidence files"
    )


class RiskAnalysis(BaseModel):
    """Structured output requested from the model."""

    fraud_risk_score: float = Field(ge=0, le=100, description="Likelihood the dispute itself is fraudulent")
    merchant_likelihood: float = Field(default=50, ge=0, le=100, description="Chance the merchant wins")
    customer_likelihood: float = Field(default=50, ge=0, le=100, description="Chance the customer wins")
    confidence_score: float = Field(ge=0, le=100, description="Confidence in this analysis")
    recommendation: Literal[
        "favor_merchant", "favor_customer", "partial_refund", "needs_review", "insufficient_data"
    ] = Field(description="Recommended outcome for the administrator")
    reasoning: str = Field(description="Explanation of the analysis")
    evidence_strength: Literal["strong", "moderate", "weak", "none"] = Field(
        default="none", description="Overall quality of the evidence"
    )
    missing_evidence: list[str] = Field(
        default_factory=list, description="Evidence that would help decide"
    )
    suggested_resolution: str = Field(default="", description="Recommended admin action")


class RiskAssessment(RiskAnalysis):
    """A completed assessment as stored against a dispute."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="Unique assessment ID")
    dispute_id: str = Field(description="Assessed dispute")
    created_at: datetime = Field(default_factory=datetime.now, description="When assessed")


class SuggestedResponse(BaseModel):
    """A drafted merchant response."""

    suggested_response: str = Field(description="Response text the merchant can submit")
    evidence_to_include: list[str] = Field(
        default_factory=list, description="Evidence the merchant should attach"
    )
    strength_assessment: Literal["strong", "moderate", "weak"] = Field(
        description="How strong the merchant's position looks"
    )
    tips: list[str] = Field(default_factory=list, description="Ways to strengthen the case")
