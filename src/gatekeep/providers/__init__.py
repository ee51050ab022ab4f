"""gatekeep providers: LLM provider abstraction layer."""

from gatekeep.providers.base import ChatProvider, ProviderError
from gatekeep.providers.config import LlmConfig, resolve_api_key
from gatekeep.providers.pricing import calculate_cost
from gatekeep.providers.pydantic_ai import PydanticAIProvider

__all__ = [
    "ChatProvider",
    "LlmConfig",
    "ProviderError",
    "PydanticAIProvider",
    "calculate_cost",
    "resolve_api_key",
]
