"""
Token counting and usage tracking.

Manages token calculations for different AI model formats.
"""

import math
from dataclasses import dataclass

CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class TokenUsage:
    """Token usage data for cost calculation."""
    input_tokens: int
    output_tokens: int

    @property
    def total_tokens(self) -> int:
        """Total tokens used (input + output)."""
        return self.input_tokens + self.output_tokens


def estimate_tokens(text: str) -> int:
    """Rough token estimate for providers that don't report usage.

    Args:
        text: Prompt or completion text

    Returns:
        ceil(len(text) / 4), 0 for empty text
    """
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)
