"""Cost calculation for token usage.

Prices are per 1M tokens (USD). Model identifiers are normalized before lookup so
"anthropic:claude-sonnet-4-5" and the OpenRouter-style "anthropic/claude-sonnet-4-5"
resolve to the same entry. Unknown models cost 0.0.
"""

from typing import Protocol


class UsageProtocol(Protocol):
    """Protocol for token usage to avoid circular imports with gatekeep.types."""

    input_tokens: int
    output_tokens: int
    cache_read_tokens: int
    cache_write_tokens: int


PROVIDER_PRICES: dict[str, dict[str, float]] = {
    "claude-opus-4-6": {
        "input": 15.00,
        "output": 75.00,
        "cache_write": 18.75,  # 1.25x input
        "cache_read": 1.50,  # 0.1x input
    },
    "claude-sonnet-4-5": {
        "input": 3.00,
        "output": 15.00,
        "cache_write": 3.75,
        "cache_read": 0.30,
    },
    "claude-haiku-4-5": {
        "input": 1.00,
        "output": 5.00,
        "cache_write": 1.25,
        "cache_read": 0.10,
    },
    "gpt-4.1": {
        "input": 2.00,
        "output": 8.00,
        "cache_write": 2.00,
        "cache_read": 0.50,
    },
    "gpt-4.1-mini": {
        "input": 0.40,
        "output": 1.60,
        "cache_write": 0.40,
        "cache_read": 0.10,
    },
}


def normalize_model_name(model: str) -> str:
    """Strip provider prefixes ("openai:", "anthropic/") and dated suffixes.

    Args:
        model: Model identifier as configured or reported by the provider

    Returns:
        Key suitable for PROVIDER_PRICES lookup
    """
    name = model.rsplit(":", 1)[-1].rsplit("/", 1)[-1]
    # Dated snapshots ("claude-sonnet-4-5-20250929") share the undated price.
    head, _, tail = name.rpartition("-")
    if head and len(tail) == 8 and tail.isdigit():
        return head
    return name


def calculate_cost(usage: UsageProtocol, model: str) -> float:
    """Calculate cost in USD for the given usage and model.

    Args:
        usage: Token usage counts (input, output, cache read/write)
        model: Model identifier (e.g., "anthropic:claude-sonnet-4-5-20250929")

    Returns:
        Total cost in USD. Returns 0.0 for unknown models or zero tokens.
    """
    prices = PROVIDER_PRICES.get(normalize_model_name(model))
    if prices is None:
        return 0.0

    input_cost = (usage.input_tokens / 1_000_000) * prices["input"]
    output_cost = (usage.output_tokens / 1_000_000) * prices["output"]
    cache_write_cost = (usage.cache_write_tokens / 1_000_000) * prices["cache_write"]
    cache_read_cost = (usage.cache_read_tokens / 1_000_000) * prices["cache_read"]

    return input_cost + output_cost + cache_write_cost + cache_read_cost
