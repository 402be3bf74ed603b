"""Configuration module using Pydantic Settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field, BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class DeadlineConfig(BaseModel):
    # Response windows, counted from filing
    merchant_response_days: int = Field(
        default=7, description="Days the merchant has to respond to a dispute"
    )
    resolution_due_days: int = Field(
        default=30, description="Days until a dispute is due for resolution"
    )


class EvidenceConfig(BaseModel):
    base_url: str = Field(
        default="file://evidence", description="Public URL prefix for stored evidence"
    )
    max_bytes: int = Field(
        default=10 * 1024 * 1024, description="Maximum evidence file size in bytes"
    )


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # LLM Configuration (risk assessment)
    llm_provider: Literal["gemini", "groq"] = Field(
        default="groq", description="LLM provider to use (gemini or groq)"
    )
    gemini_api_key: str = Field(default="", description="Google Gemini API key")
    gemini_model: str = Field(
        default="gemini-1.5-flash", description="Gemini model to use"
    )
    groq_api_key: str = Field(default="", description="Groq API key")
    groq_model: str = Field(
        default="openai/gpt-oss-120b", description="Groq model to use"
    )

    deadlines: DeadlineConfig = DeadlineConfig()

    evidence: EvidenceConfig = EvidenceConfig()

    default_currency: str = Field(default="SLE", description="Default currency code")

    # Background work
    background_workers: int = Field(
        default=4, description="Worker threads for notifications and risk assessment"
    )
    risk_timeout_seconds: float = Field(
        default=30.0, description="Timeout for a single risk assessment call"
    )
    notification_timeout_seconds: float = Field(
        default=10.0, description="Timeout for a single notification delivery"
    )

    # Resilience Settings
    max_retries: int = Field(default=3, description="Maximum retry attempts for LLM calls")
    retry_backoff_base: float = Field(
        default=2.0, description="Base for exponential backoff"
    )
    rate_limit_rpm: int = Field(
        default=60, description="Rate limit in requests per minute"
    )
    circuit_breaker_threshold: int = Field(
        default=5, description="Failures before circuit breaker opens"
    )

    # Paths
    data_dir: Path = Field(default=Path("data"), description="Directory for data files")
    log_level: str = Field(default="INFO", description="Logging level")

    @property
    def evidence_dir(self) -> Path:
        """Path to locally stored evidence files."""
        return self.data_dir / "evidence"

    @property
    def outbox_file(self) -> Path:
        """Path to the notification outbox read by the delivery layer."""
        return self.data_dir / "outbox.jsonl"

    @property
    def logs_dir(self) -> Path:
        """Path to audit log files."""
        return self.data_dir / "logs"


# Global settings instance
settings = Settings()
