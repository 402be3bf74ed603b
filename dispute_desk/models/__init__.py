"""Models module - Pydantic data models."""

from .actor import Actor
from .dispute import Dispute, Evidence, derive_priority
from .message import DisputeMessage, Attachment
from .event import DisputeEvent
from .assessment import DisputeSnapshot, RiskAssessment, SuggestedResponse

__all__ = [
    "Actor",
    "Dispute",
    "Evidence",
    "derive_priority",
    "DisputeMessage",
    "Attachment",
    "DisputeEvent",
    "DisputeSnapshot",
    "RiskAssessment",
    "SuggestedResponse",
]
