"""
Usage metering.

Converts token counts into an estimated cost and appends one record per
successful generation to the generation ledger.
"""

from datetime import datetime

import structlog

from ai_resume_builder.sdk.provider import GeneratedContent
from ai_resume_builder.storage.models import GenerationHistoryRecord
from ai_resume_builder.storage.repository import ResumeRepository, new_id

from .pricing import ModelPricing, PricingTable, calculate_cost
from .token_counter import TokenUsage

logger = structlog.get_logger().bind(module="metering")


class UsageMeter:
    """Prices generations and writes them to the ledger."""

    def __init__(self, repository: ResumeRepository, pricing: PricingTable, model: str):
        """Initialize the meter.

        Args:
            repository: Storage for history records
            pricing: Configured rates
            model: Default model to price when a generation reports none

        Raises:
            ValueError: If ``model`` has no configured pricing
        """
        self.repository = repository
        self.pricing = pricing
        self.model = model
        self.default_pricing: ModelPricing = pricing.get_pricing(model)

    def cost(self, prompt_tokens: int, completion_tokens: int) -> float:
        """Cost in USD of a call on the default model."""
        usage = TokenUsage(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens)
        return float(calculate_cost(self.default_pricing, usage))

    def _cost_for(self, generated: GeneratedContent) -> float:
        model = generated.model or self.model
        if model in self.pricing.prices:
            return float(calculate_cost(self.pricing.get_pricing(model), generated.usage))
        logger.warning("pricing_missing_for_model", model=model, fallback=self.model)
        return self.cost(generated.prompt_tokens, generated.completion_tokens)

    def record(
        self, user_id: str, document_id: str, generated: GeneratedContent
    ) -> GenerationHistoryRecord:
        """Append the history record for a persisted document.

        Raises:
            DocumentNotFound: If the document does not exist for the user
            sqlite3.Error: Storage errors are propagated unchanged
        """
        record = GenerationHistoryRecord(
            id=new_id(),
            user_id=user_id,
            document_id=document_id,
            prompt_tokens=generated.prompt_tokens,
            completion_tokens=generated.completion_tokens,
            total_cost=self._cost_for(generated),
            generation_time_ms=generated.generation_time_ms,
            model=generated.model or self.model,
            created_at=datetime.now(),
        )
        self.repository.save_history_record(record)
        logger.info(
            "usage_recorded",
            document_id=document_id,
            total_tokens=record.total_tokens,
            total_cost=record.total_cost,
        )
        return record
