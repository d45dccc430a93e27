"""Cost estimation for model comparison.

Pure functions over a static pricing table.  Used by the benchmark runner
to compare models offline; nothing on the extraction path depends on it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

# Rough characters-per-token ratio for English prose.
_CHARS_PER_TOKEN = 3.5


@dataclass(frozen=True)
class ModelPricing:
    """USD price per one million tokens.

    Attributes:
        input_per_million: Price of one million prompt tokens.
        output_per_million: Price of one million generated tokens.
    """

    input_per_million: float
    output_per_million: float


# Published list prices, standard tier, prompts <= 200k tokens.
MODEL_PRICING: dict[str, ModelPricing] = {
    "gemini-2.0-flash": ModelPricing(0.10, 0.40),
    "gemini-2.0-flash-lite": ModelPricing(0.075, 0.30),
    "gemini-2.5-flash": ModelPricing(0.30, 2.50),
    "gemini-2.5-flash-lite": ModelPricing(0.10, 0.40),
    "gemini-2.5-pro": ModelPricing(1.25, 10.00),
}


def estimate_cost(input_tokens: int, output_tokens: int, model: str) -> float:
    """Estimate the USD cost of one call.

    Args:
        input_tokens: Prompt tokens sent.
        output_tokens: Tokens generated.
        model: Model identifier; must be a key of :data:`MODEL_PRICING`.

    Returns:
        ``input_tokens / 1e6 * input_rate + output_tokens / 1e6 * output_rate``.

    Raises:
        ValueError: If *model* is not priced or a token count is negative.
    """
    pricing = MODEL_PRICING.get(model)
    if pricing is None:
        known = ", ".join(sorted(MODEL_PRICING))
        raise ValueError(f"Unknown model {model!r}; priced models: {known}")
    if input_tokens < 0 or output_tokens < 0:
        raise ValueError("Token counts must be non-negative")

    return (
        input_tokens / 1_000_000 * pricing.input_per_million
        + output_tokens / 1_000_000 * pricing.output_per_million
    )


def estimate_tokens(text: str) -> int:
    """Approximate the token count of *text* (about 3.5 characters per token)."""
    return math.ceil(len(text) / _CHARS_PER_TOKEN)
