"""
Pricing calculations and rate management.

Handles cost computations for the metered LLM providers.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict

from .token_counter import TokenUsage


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for a specific model."""
    input_cost_per_1k: Decimal  # Cost per 1K input tokens
    output_cost_per_1k: Decimal  # Cost per 1K output tokens


@dataclass(frozen=True)
class PricingTable:
    """Fixed pricing table for one provider's models."""
    prices: Dict[str, ModelPricing]
    default_model: str

    def __post_init__(self):
        if self.default_model not in self.prices:
            raise ValueError(f"Default model {self.default_model} missing from pricing table")

    def get_pricing(self, model: str) -> ModelPricing:
        """Get pricing for a specific model.

        Unlisted models are billed at the default model's rates so that a
        new or renamed model id never breaks accounting.

        Args:
            model: Model identifier

        Returns:
            ModelPricing for the model, or for the default model
        """
        return self.prices.get(model, self.prices[self.default_model])


OPENAI_PRICING = PricingTable(
    prices={
        "gpt-4": ModelPricing(
            input_cost_per_1k=Decimal("0.03"),
            output_cost_per_1k=Decimal("0.06")
        ),
        "gpt-4-turbo": ModelPricing(
            input_cost_per_1k=Decimal("0.01"),
            output_cost_per_1k=Decimal("0.03")
        ),
        "gpt-3.5-turbo": ModelPricing(
            input_cost_per_1k=Decimal("0.001"),
            output_cost_per_1k=Decimal("0.002")
        ),
    },
    default_model="gpt-4",
)

CLAUDE_PRICING = PricingTable(
    prices={
        "claude-3-opus-20240229": ModelPricing(
            input_cost_per_1k=Decimal("0.015"),
            output_cost_per_1k=Decimal("0.075")
        ),
        "claude-3-sonnet-20240229": ModelPricing(
            input_cost_per_1k=Decimal("0.003"),
            output_cost_per_1k=Decimal("0.015")
        ),
        "claude-3-haiku-20240307": ModelPricing(
            input_cost_per_1k=Decimal("0.00025"),
            output_cost_per_1k=Decimal("0.00125")
        ),
    },
    default_model="claude-3-sonnet-20240229",
)


def calculate_cost(table: PricingTable, model: str, usage: TokenUsage) -> float:
    """Calculate total cost for model usage.

    Args:
        table: Pricing table of the provider that served the call
        model: Model identifier
        usage: Token usage data

    Returns:
        input_tokens * input_rate + output_tokens * output_rate, unrounded
    """
    pricing = table.get_pricing(model)

    input_cost = (Decimal(usage.input_tokens) / Decimal("1000")) * pricing.input_cost_per_1k
    output_cost = (Decimal(usage.output_tokens) / Decimal("1000")) * pricing.output_cost_per_1k

    return float(input_cost + output_cost)
