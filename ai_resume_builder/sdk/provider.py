"""
Generation provider capability.

A provider turns a profile snapshot and a job description into generated
text plus token usage and latency. Providers never retry on their own.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from ai_resume_builder.core.profile import ProfileSnapshot
from ai_resume_builder.core.token_counter import TokenUsage

from .prompts import build_cover_letter_messages, build_resume_messages


class ProviderError(Exception):
    """Raised on transport, authentication or malformed-response failures."""


@dataclass(frozen=True)
class GeneratedContent:
    """Raw provider output for one generation.

    The text is an opaque payload; nothing downstream parses it.
    """
    content: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    generation_time_ms: int
    model: str

    @property
    def usage(self) -> TokenUsage:
        return TokenUsage(
            prompt_tokens=self.prompt_tokens,
            completion_tokens=self.completion_tokens,
        )


class GenerationProvider(ABC):
    """Capability interface over a text-generation backend."""

    model: str

    @abstractmethod
    def generate_resume(
        self,
        snapshot: ProfileSnapshot,
        job_description: str,
        custom_sections: Sequence[str] = (),
    ) -> GeneratedContent:
        """Generate a resume tailored to ``job_description``."""

    @abstractmethod
    def generate_cover_letter(
        self, snapshot: ProfileSnapshot, job_description: str, company_name: str = ""
    ) -> GeneratedContent:
        """Generate a cover letter for ``company_name``."""


class CannedGenerationProvider(GenerationProvider):
    """Deterministic provider that never leaves the process.

    Returns fixed text; token counts are derived from the prompt and
    output length (roughly four characters per token).
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        resume_text: str = '{"summary": "Experienced professional."}',
        cover_letter_text: str = '{"opening": "Dear Hiring Manager,"}',
    ):
        self.model = model
        self.resume_text = resume_text
        self.cover_letter_text = cover_letter_text

    def _respond(self, messages, text: str) -> GeneratedContent:
        prompt_tokens = sum(len(m["content"]) for m in messages) // 4
        completion_tokens = max(1, len(text) // 4)
        return GeneratedContent(
            content=text,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            generation_time_ms=0,
            model=self.model,
        )

    def generate_resume(self, snapshot, job_description, custom_sections=()):
        messages = build_resume_messages(snapshot, job_description, custom_sections)
        return self._respond(messages, self.resume_text)

    def generate_cover_letter(self, snapshot, job_description, company_name=""):
        messages = build_cover_letter_messages(snapshot, job_description, company_name)
        return self._respond(messages, self.cover_letter_text)
