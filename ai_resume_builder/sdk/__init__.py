"""
SDK for AI Resume Builder.

Generation providers: the OpenAI-backed client and a deterministic
offline stand-in.
"""

from .openai_client import OpenAIGenerationProvider
from .provider import (
    CannedGenerationProvider,
    GeneratedContent,
    GenerationProvider,
    ProviderError,
)

__all__ = [
    "CannedGenerationProvider",
    "GeneratedContent",
    "GenerationProvider",
    "OpenAIGenerationProvider",
    "ProviderError",
]
