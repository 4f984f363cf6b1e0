"""
OpenAI-backed generation provider.

Submits resume and cover letter prompts through the chat completions API
and reports token usage and wall-clock latency with the text.
"""

import time
from typing import Dict, List, Optional, Sequence

import structlog
from openai import OpenAI, OpenAIError

from ai_resume_builder.core.profile import ProfileSnapshot

from .prompts import build_cover_letter_messages, build_resume_messages
from .provider import GeneratedContent, GenerationProvider, ProviderError

logger = structlog.get_logger().bind(module="openai_client")


class OpenAIGenerationProvider(GenerationProvider):
    """Generation provider using OpenAI chat completions.

    The SDK's own retries are disabled; any retry policy belongs to the
    caller. All failures are loud and surface as ``ProviderError``.
    """

    def __init__(
        self,
        model: str,
        temperature: float = 0.7,
        resume_max_tokens: int = 1500,
        cover_letter_max_tokens: int = 800,
        timeout: float = 60.0,
        client: Optional[OpenAI] = None,
    ):
        """Initialize the provider.

        Args:
            model: OpenAI model name (required)
            temperature: Sampling temperature
            resume_max_tokens: Output limit for resumes
            cover_letter_max_tokens: Output limit for cover letters
            timeout: Per-request timeout in seconds
            client: Preconfigured client; by default one is built that
                reads ``OPENAI_API_KEY`` from the environment

        Raises:
            ValueError: If model is missing/empty
        """
        if not model or not model.strip():
            raise ValueError("model is required and cannot be empty")

        self.model = model
        self.temperature = temperature
        self.resume_max_tokens = resume_max_tokens
        self.cover_letter_max_tokens = cover_letter_max_tokens
        self.timeout = timeout
        self.client = client or OpenAI(max_retries=0, timeout=timeout)

    def generate_resume(
        self,
        snapshot: ProfileSnapshot,
        job_description: str,
        custom_sections: Sequence[str] = (),
    ) -> GeneratedContent:
        messages = build_resume_messages(snapshot, job_description, custom_sections)
        return self._complete(messages, self.resume_max_tokens)

    def generate_cover_letter(
        self, snapshot: ProfileSnapshot, job_description: str, company_name: str = ""
    ) -> GeneratedContent:
        messages = build_cover_letter_messages(snapshot, job_description, company_name)
        return self._complete(messages, self.cover_letter_max_tokens)

    def _complete(self, messages: List[Dict[str, str]], max_tokens: int) -> GeneratedContent:
        """Make one chat completion call and extract text, usage and latency.

        Raises:
            ProviderError: On API errors or a response without content or usage
        """
        started = time.perf_counter()
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=max_tokens,
                timeout=self.timeout,
            )
        except OpenAIError as e:
            logger.warning("provider_call_failed", model=self.model, error=str(e))
            raise ProviderError(f"OpenAI request failed: {e}") from e
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        if not response.choices:
            raise ProviderError("OpenAI response contained no choices")
        content = response.choices[0].message.content
        if not content:
            raise ProviderError("OpenAI response contained no content")

        usage = response.usage
        if not usage:
            raise ProviderError("OpenAI response missing usage information")

        logger.info(
            "provider_call_completed",
            model=self.model,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            generation_time_ms=elapsed_ms,
        )
        return GeneratedContent(
            content=content,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=usage.total_tokens,
            generation_time_ms=elapsed_ms,
            model=self.model,
        )
