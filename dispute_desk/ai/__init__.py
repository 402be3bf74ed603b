"""AI module - risk assessment client and its prompts."""

from .client import RiskAssessmentClient
from .security import sanitize_text

__all__ = ["RiskAssessmentClient", "sanitize_text"]
