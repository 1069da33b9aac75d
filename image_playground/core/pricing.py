"""
Pricing calculations and rate management.

Estimates the USD cost of image model calls from reported token usage.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Union

from .token_counter import ImageTokenUsage, InvalidUsageData, extract_usage


class CachePolicy(Enum):
    """How cached input tokens are subtracted before pricing input."""
    TEXT_ONLY = "text_only"  # cache discount applies to text tokens only
    COMBINED = "combined"    # discount applies to the text+image pool at one rate


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for a specific image model."""
    text_input_per_1m: Decimal   # Cost per 1M text input tokens
    image_input_per_1m: Decimal  # Cost per 1M image input tokens
    cached_input_per_1m: Decimal  # Cost per 1M cached input tokens
    image_output_per_1m: Decimal  # Cost per 1M image output tokens
    cache_policy: CachePolicy = CachePolicy.TEXT_ONLY


@dataclass(frozen=True)
class PricingTable:
    """Fixed pricing table for supported models."""
    prices: Mapping[str, ModelPricing]
    fallback_model: str

    def __post_init__(self):
        if self.fallback_model not in self.prices:
            raise ValueError(f"Fallback model {self.fallback_model} has no pricing")
        object.__setattr__(self, "prices", MappingProxyType(dict(self.prices)))

    def get_pricing(self, model: str) -> ModelPricing:
        """Get pricing for a model, falling back for unknown identifiers.

        Args:
            model: Model identifier

        Returns:
            ModelPricing for the model, or for the fallback model
        """
        return self.prices.get(model, self.prices[self.fallback_model])

    @property
    def models(self):
        return tuple(self.prices.keys())


DEFAULT_MODEL = "gpt-image-1.5"
FALLBACK_MODEL = "gpt-image-1"

_ONE_MILLION = Decimal("1000000")
_COST_QUANTUM = Decimal("0.0001")

# Vendor list prices, USD per 1M tokens
PRICING_TABLE = PricingTable(
    prices={
        "gpt-image-1": ModelPricing(
            text_input_per_1m=Decimal("5.00"),
            image_input_per_1m=Decimal("10.00"),
            cached_input_per_1m=Decimal("1.25"),
            image_output_per_1m=Decimal("40.00"),
        ),
        "gpt-image-1-mini": ModelPricing(
            text_input_per_1m=Decimal("2.00"),
            image_input_per_1m=Decimal("2.50"),
            cached_input_per_1m=Decimal("0.20"),
            image_output_per_1m=Decimal("8.00"),
        ),
        "gpt-image-1.5": ModelPricing(
            text_input_per_1m=Decimal("5.00"),
            image_input_per_1m=Decimal("8.00"),
            cached_input_per_1m=Decimal("1.25"),
            image_output_per_1m=Decimal("32.00"),
        ),
    },
    fallback_model=FALLBACK_MODEL,
)


@dataclass(frozen=True)
class CostBreakdown:
    """Estimated cost of one call plus the token counts behind it."""
    estimated_cost_usd: float
    text_input_tokens: int
    image_input_tokens: int
    cached_input_tokens: int
    billable_input_tokens: int
    image_output_tokens: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "estimated_cost_usd": self.estimated_cost_usd,
            "text_input_tokens": self.text_input_tokens,
            "image_input_tokens": self.image_input_tokens,
            "cached_input_tokens": self.cached_input_tokens,
            "billable_input_tokens": self.billable_input_tokens,
            "image_output_tokens": self.image_output_tokens,
        }


CostResult = Union[CostBreakdown, InvalidUsageData]


def _per_token(rate_per_1m: Decimal) -> Decimal:
    return rate_per_1m / _ONE_MILLION


def price_usage(usage: ImageTokenUsage, pricing: ModelPricing) -> Decimal:
    """Compute the unrounded cost of validated token usage.

    Args:
        usage: Validated token counts
        pricing: Rates of the model that served the call

    Returns:
        Exact cost in USD
    """
    cached = usage.cached_input_tokens
    if pricing.cache_policy is CachePolicy.COMBINED:
        billable = max(usage.total_input_tokens - cached, 0)
        input_cost = billable * _per_token(pricing.text_input_per_1m)
    else:
        effective_text = max(usage.text_input_tokens - cached, 0)
        input_cost = (
            effective_text * _per_token(pricing.text_input_per_1m)
            + usage.image_input_tokens * _per_token(pricing.image_input_per_1m)
        )

    cached_cost = cached * _per_token(pricing.cached_input_per_1m)
    output_cost = usage.output_tokens * _per_token(pricing.image_output_per_1m)
    return input_cost + cached_cost + output_cost


def estimate_cost(
    usage: Any,
    model: str = DEFAULT_MODEL,
    table: PricingTable = PRICING_TABLE
) -> CostResult:
    """Estimate the cost of an image API call from its usage payload.

    Never raises on bad input: an unusable payload yields InvalidUsageData
    and an unknown model is priced with the table's fallback rates.

    Args:
        usage: Provider usage payload (dict or SDK model), may be None
        model: Model identifier the call was made with
        table: Pricing table to read rates from

    Returns:
        CostBreakdown with the cost rounded half-up to 4 decimal places,
        or InvalidUsageData
    """
    token_usage = extract_usage(usage)
    if isinstance(token_usage, InvalidUsageData):
        return token_usage

    pricing = table.get_pricing(model)
    total_cost = price_usage(token_usage, pricing)
    rounded_cost = total_cost.quantize(_COST_QUANTUM, rounding=ROUND_HALF_UP)

    return CostBreakdown(
        estimated_cost_usd=float(rounded_cost),
        text_input_tokens=token_usage.text_input_tokens,
        image_input_tokens=token_usage.image_input_tokens,
        cached_input_tokens=token_usage.cached_input_tokens,
        billable_input_tokens=max(token_usage.total_input_tokens - token_usage.cached_input_tokens, 0),
        image_output_tokens=token_usage.output_tokens,
    )
