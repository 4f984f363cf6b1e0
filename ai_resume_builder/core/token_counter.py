"""
Token counting and usage tracking.

Carries the token counts reported by a generation backend.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TokenUsage:
    """Token usage data for cost calculation.

    Contains exact token counts as reported by the provider, without
    estimation or model-specific logic.
    """
    prompt_tokens: int
    completion_tokens: int

    def __post_init__(self):
        """Validate token counts are non-negative."""
        if self.prompt_tokens < 0 or self.completion_tokens < 0:
            raise ValueError("token counts must be >= 0")

    @property
    def total_tokens(self) -> int:
        """Total tokens used (prompt + completion)."""
        return self.prompt_tokens + self.completion_tokens
