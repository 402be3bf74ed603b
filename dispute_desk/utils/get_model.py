import os
from typing import Literal

from langchain.chat_models import init_chat_model

# Our provider names mapped to langchain model_provider names
PROVIDER_MAP = {
    "gemini": "google_genai",
    "groq": "groq",
}

# Environment variables each provider reads its key from
API_KEY_ENV = {
    "gemini": "GOOGLE_API_KEY",
    "groq": "GROQ_API_KEY",
}


def create_llm(
    provider: Literal["gemini", "groq"],
    api_key: str,
    model: str,
    temperature: float = 0.2,
):
    """Create a chat model for dispute assessment using init_chat_model.

    Args:
        provider: The LLM provider ('gemini' or 'groq')
        api_key: API key for the provider
        model: Model name to use
        temperature: Low by default, assessments should be repeatable

    Returns:
        Configured chat model instance
    """
    if provider not in PROVIDER_MAP:
        raise ValueError(f"Unknown provider: {provider}")

    os.environ[API_KEY_ENV[provider]] = api_key

    return init_chat_model(
        model=model,
        model_provider=PROVIDER_MAP[provider],
        temperature=temperature,
    )
