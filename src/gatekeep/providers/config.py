"""LLM provider configuration.

Defines the ``[llm]`` table of gatekeep.toml and API key resolution.
Uses BaseModel (not BaseSettings); environment lookups are explicit.
"""

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

API_KEY_ENV = "GATEKEEP_LLM_API_KEY"

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "openai:google/gemini-3-flash-preview"


def resolve_api_key(explicit: str | None = None) -> str | None:
    """Resolve the LLM API key.

    Checks in order:
    1. Explicit value (``--api-key``)
    2. GATEKEEP_LLM_API_KEY environment variable

    Returns:
        The key, or None to let the backend read its own environment variable
        (e.g. OPENAI_API_KEY) when no OpenAI-compatible base URL is configured.
    """
    if explicit:
        return explicit
    return os.environ.get(API_KEY_ENV) or None


class LlmConfig(BaseModel):
    """Configuration for the review model.

    ``model`` uses pydantic-ai's "provider:model" shorthand. When ``base_url`` is set
    the model is served through an OpenAI-compatible endpoint (OpenRouter by default)
    and ``headers``/``body`` are forwarded on every request.
    """

    model: str = DEFAULT_MODEL
    base_url: str | None = DEFAULT_BASE_URL
    headers: dict[str, str] = Field(
        default_factory=lambda: {
            "HTTP-Referer": "https://github.com/gatekeep-dev/gatekeep",
            "X-Title": "gatekeep",
        }
    )
    body: dict[str, Any] = Field(default_factory=lambda: {"parallel_tool_calls": True})
    temperature: float | None = None
    max_tokens: int | None = None
    timeout_seconds: float = 120

    model_config = ConfigDict(extra="forbid")
