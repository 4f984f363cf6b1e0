"""
Pricing calculations and rate management.

Handles cost computations for the generation models. Rates come from
configuration, never from assumptions baked into the code.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Mapping

from .token_counter import TokenUsage

ONE_MILLION = Decimal("1000000")


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for a specific model."""
    input_per_1m: Decimal  # USD per 1M prompt tokens
    output_per_1m: Decimal  # USD per 1M completion tokens

    def __post_init__(self):
        """Validate rates are non-negative."""
        if self.input_per_1m < 0 or self.output_per_1m < 0:
            raise ValueError("pricing rates must be >= 0")


@dataclass(frozen=True)
class PricingTable:
    """Pricing table for configured models."""
    prices: Dict[str, ModelPricing]

    @classmethod
    def from_rates(cls, rates: Mapping[str, Mapping[str, float]]) -> "PricingTable":
        """Build a table from ``{model: {"input_per_1m": x, "output_per_1m": y}}``."""
        return cls({
            model: ModelPricing(
                input_per_1m=Decimal(str(rate["input_per_1m"])),
                output_per_1m=Decimal(str(rate["output_per_1m"])),
            )
            for model, rate in rates.items()
        })

    def get_pricing(self, model: str) -> ModelPricing:
        """Get pricing for a specific model.

        Args:
            model: Model identifier

        Returns:
            ModelPricing for the model

        Raises:
            ValueError: If model is not supported
        """
        if model not in self.prices:
            raise ValueError(f"Unsupported model: {model}")
        return self.prices[model]


# Published list prices for the default models (USD per 1M tokens).
DEFAULT_RATES = {
    "gpt-4o-mini": {"input_per_1m": 0.15, "output_per_1m": 0.60},
    "gpt-4o": {"input_per_1m": 2.50, "output_per_1m": 10.00},
}


def calculate_cost(pricing: ModelPricing, usage: TokenUsage) -> Decimal:
    """Calculate the exact cost of a call.

    The result is ``prompt_tokens * input_rate + completion_tokens * output_rate``
    with no rounding, so it stays linear and monotonic in both token counts.

    Args:
        pricing: Rates of the model that served the call
        usage: Token usage data

    Returns:
        Total cost in USD
    """
    prompt_cost = Decimal(usage.prompt_tokens) * pricing.input_per_1m / ONE_MILLION
    completion_cost = Decimal(usage.completion_tokens) * pricing.output_per_1m / ONE_MILLION
    return prompt_cost + completion_cost
