"""
Unit tests for pricing calculations.

Tests cost accuracy, default-model fallback and token estimation.
"""

import pytest
from decimal import Decimal

from focus_coach.core.pricing import (
    CLAUDE_PRICING,
    OPENAI_PRICING,
    ModelPricing,
    PricingTable,
    calculate_cost,
)
from focus_coach.core.token_counter import TokenUsage, estimate_tokens


class TestTokenUsage:
    """Test TokenUsage dataclass."""

    def test_total_tokens_calculation(self):
        """Verify total_tokens is computed correctly."""
        usage = TokenUsage(input_tokens=100, output_tokens=50)
        assert usage.total_tokens == 150

    def test_zero_tokens(self):
        """Verify zero token handling."""
        usage = TokenUsage(input_tokens=0, output_tokens=0)
        assert usage.total_tokens == 0


class TestTokenEstimate:
    """Test the character-based estimate used for the local server."""

    def test_empty_text(self):
        """Empty text is zero tokens."""
        assert estimate_tokens("") == 0

    def test_rounds_up(self):
        """Partial groups of four characters count as a whole token."""
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2


class TestPricingTable:
    """Test pricing table functionality."""

    def test_get_supported_model(self):
        """Verify pricing retrieval for supported models."""
        gpt4_pricing = OPENAI_PRICING.get_pricing("gpt-4")
        assert gpt4_pricing.input_cost_per_1k == Decimal("0.03")
        assert gpt4_pricing.output_cost_per_1k == Decimal("0.06")

    def test_unknown_model_uses_default_rates(self):
        """Unlisted models are billed at the provider's default model rates."""
        assert OPENAI_PRICING.get_pricing("gpt-9-preview") == OPENAI_PRICING.get_pricing("gpt-4")
        assert CLAUDE_PRICING.get_pricing("claude-next") == CLAUDE_PRICING.get_pricing("claude-3-sonnet-20240229")

    def test_default_model_must_be_listed(self):
        """A table whose default model has no rates is rejected."""
        with pytest.raises(ValueError, match="Default model"):
            PricingTable(
                prices={"a": ModelPricing(Decimal("1"), Decimal("1"))},
                default_model="b",
            )


class TestCostCalculation:
    """Test cost calculation accuracy."""

    def test_exact_cost_gpt4(self):
        """Verify exact cost calculation for GPT-4."""
        usage = TokenUsage(input_tokens=1000, output_tokens=500)
        # 1000/1000 * 0.03 + 500/1000 * 0.06
        assert calculate_cost(OPENAI_PRICING, "gpt-4", usage) == pytest.approx(0.06)

    def test_exact_cost_claude_sonnet(self):
        """Verify exact cost calculation for Claude Sonnet."""
        usage = TokenUsage(input_tokens=2000, output_tokens=1000)
        cost = calculate_cost(CLAUDE_PRICING, "claude-3-sonnet-20240229", usage)
        assert cost == pytest.approx(0.006 + 0.015)

    def test_small_costs_are_not_rounded(self):
        """Fractions of a cent survive so monthly sums stay exact."""
        usage = TokenUsage(input_tokens=10, output_tokens=10)
        cost = calculate_cost(OPENAI_PRICING, "gpt-3.5-turbo", usage)
        assert cost == pytest.approx(0.00003)
        assert cost > 0

    def test_zero_tokens_cost_nothing(self):
        """Verify zero usage costs nothing."""
        usage = TokenUsage(input_tokens=0, output_tokens=0)
        assert calculate_cost(OPENAI_PRICING, "gpt-4", usage) == 0.0
