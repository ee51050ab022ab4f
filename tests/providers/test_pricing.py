"""Tests for cost calculation."""

import pytest

from gatekeep.providers.pricing import PROVIDER_PRICES, calculate_cost, normalize_model_name
from gatekeep.types import TokenUsage


class TestNormalizeModelName:
    """Test model name normalization."""

    @pytest.mark.parametrize(
        ("model", "expected"),
        [
            ("claude-sonnet-4-5", "claude-sonnet-4-5"),
            ("anthropic:claude-sonnet-4-5-20250929", "claude-sonnet-4-5"),
            ("anthropic/claude-haiku-4-5", "claude-haiku-4-5"),
            ("openai:gpt-4.1-mini", "gpt-4.1-mini"),
            ("google/gemini-3-flash-preview", "gemini-3-flash-preview"),
        ],
    )
    def test_normalize(self, model: str, expected: str) -> None:
        """Provider prefixes and dated suffixes are removed."""
        assert normalize_model_name(model) == expected


class TestCalculateCost:
    """Test calculate_cost."""

    def test_known_model(self) -> None:
        """Cost sums every token class at its price."""
        usage = TokenUsage(
            input_tokens=1_000_000,
            output_tokens=1_000_000,
            cache_read_tokens=1_000_000,
            cache_write_tokens=1_000_000,
        )
        prices = PROVIDER_PRICES["claude-sonnet-4-5"]
        assert calculate_cost(usage, "anthropic:claude-sonnet-4-5") == pytest.approx(
            prices["input"] + prices["output"] + prices["cache_read"] + prices["cache_write"]
        )

    def test_unknown_model(self) -> None:
        """Unknown models cost nothing."""
        assert calculate_cost(TokenUsage(input_tokens=500), "mystery-model") == 0.0

    def test_zero_tokens(self) -> None:
        """No tokens, no cost."""
        assert calculate_cost(TokenUsage(), "gpt-4.1") == 0.0
