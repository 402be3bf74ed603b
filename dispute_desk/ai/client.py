"""Risk assessment client backed by a LangChain chat model."""

from typing import Literal, TypeVar

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel

from dispute_desk.ai.prompts import RESPONSE_PROMPT, get_analysis_prompt
from dispute_desk.ai.security import sanitize_text
from dispute_desk.config import settings
from dispute_desk.errors import DependencyDegraded
from dispute_desk.models.assessment import (
    DisputeSnapshot,
    RiskAnalysis,
    RiskAssessment,
    SuggestedResponse,
)
from dispute_desk.utils.get_model import create_llm
from dispute_desk.utils.logging import get_logger
from dispute_desk.utils.pii import mask_pii
from dispute_desk.utils.resilience import (
    CircuitBreaker,
    CircuitBreakerOpen,
    RateLimiter,
    with_retry,
)

logger = get_logger("risk", settings.log_level)

S = TypeVar("S", bound=BaseModel)


class RiskAssessmentClient:
    """Scores disputes and drafts merchant responses.

    Calls are slow and may fail; callers treat every error as a degraded
    dependency and carry on without a score or suggestion.
    """

    def __init__(
        self,
        provider: Literal["gemini", "groq"] | None = None,
        api_key: str | None = None,
        model: str | None = None,
    ):
        self.provider = provider or settings.llm_provider

        if self.provider == "gemini":
            self.api_key = api_key or settings.gemini_api_key
            self.model_name = model or settings.gemini_model
        elif self.provider == "groq":
            self.api_key = api_key or settings.groq_api_key
            self.model_name = model or settings.groq_model
        else:
            raise ValueError(f"Unknown provider: {self.provider}")

        self.rate_limiter = RateLimiter(settings.rate_limit_rpm)
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.circuit_breaker_threshold,
            name="risk assessment",
        )
        self._llm = None

    def is_configured(self) -> bool:
        """Whether an API key is available for the selected provider."""
        return bool(self.api_key)

    @property
    def llm(self):
        if self._llm is None:
            self._llm = create_llm(
                provider=self.provider,
                api_key=self.api_key,
                model=self.model_name,
            )
            logger.info(f"Initialized risk model {self.provider}/{self.model_name}")
        return self._llm

    @staticmethod
    def _prepare_snapshot(snapshot: DisputeSnapshot) -> str:
        """Serialize a snapshot with party-supplied text cleaned and masked."""
        statement = sanitize_text(snapshot.customer_statement).text
        response = (
            sanitize_text(snapshot.merchant_response).text
            if snapshot.merchant_response
            else None
        )
        cleaned = snapshot.model_copy(update={
            "customer_statement": mask_pii(statement),
            "merchant_response": mask_pii(response) if response else None,
        })
        return cleaned.model_dump_json()

    @with_retry(max_attempts=settings.max_retries, backoff_base=settings.retry_backoff_base)
    def _invoke(self, schema: type[S], system_prompt: str, payload: str) -> S:
        """Invoke the model for structured output, with retry logic."""
        self.rate_limiter.acquire(timeout=settings.risk_timeout_seconds)
        structured = self.llm.with_structured_output(schema)
        return structured.invoke([
            SystemMessage(content=system_prompt),
            HumanMessage(content=payload),
        ])

    def _call(self, schema: type[S], system_prompt: str, snapshot: DisputeSnapshot) -> S:
        if not self.is_configured():
            raise DependencyDegraded(
                f"Risk assessment is not configured for provider {self.provider}"
            )
        try:
            return self.circuit_breaker.call(
                self._invoke, schema, system_prompt, self._prepare_snapshot(snapshot)
            )
        except CircuitBreakerOpen as e:
            raise DependencyDegraded(str(e)) from e

    def analyze(self, snapshot: DisputeSnapshot) -> RiskAssessment:
        """Score a dispute for fraud risk and likely outcome.

        Raises:
            DependencyDegraded: If unconfigured or the circuit is open
            RetryError: If every attempt failed
        """
        analysis = self._call(RiskAnalysis, get_analysis_prompt(), snapshot)
        return RiskAssessment(dispute_id=snapshot.id, **analysis.model_dump())

    def suggest_response(self, snapshot: DisputeSnapshot) -> SuggestedResponse:
        """Draft a response the merchant can adapt and submit."""
        return self._call(SuggestedResponse, RESPONSE_PROMPT, snapshot)
