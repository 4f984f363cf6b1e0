"""
Configuration management and loading.

Handles generation, retry, pricing, quota and storage settings. The
OpenAI API key is never read from the config file; the OpenAI SDK takes
it from the ``OPENAI_API_KEY`` environment variable.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ai_resume_builder.core.pricing import DEFAULT_RATES, PricingTable
from ai_resume_builder.storage.db import DEFAULT_DB_PATH


@dataclass(frozen=True)
class GenerationSettings:
    """Model and output limits for the generation provider."""
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    resume_max_tokens: int = 1500
    cover_letter_max_tokens: int = 800
    request_timeout_seconds: float = 60.0

    def __post_init__(self):
        """Validate generation values."""
        if not self.model or not self.model.strip():
            raise ValueError("generation.model cannot be empty")
        if not 0 <= self.temperature <= 2:
            raise ValueError("generation.temperature must be between 0 and 2")
        if self.resume_max_tokens <= 0:
            raise ValueError("generation.resume_max_tokens must be > 0")
        if self.cover_letter_max_tokens <= 0:
            raise ValueError("generation.cover_letter_max_tokens must be > 0")
        if self.cover_letter_max_tokens > self.resume_max_tokens:
            raise ValueError(
                "generation.cover_letter_max_tokens must not exceed resume_max_tokens"
            )
        if self.request_timeout_seconds <= 0:
            raise ValueError("generation.request_timeout_seconds must be > 0")


@dataclass(frozen=True)
class RetrySettings:
    """Provider retry policy. ``max_attempts: 1`` means no retry."""
    max_attempts: int = 1
    backoff_multiplier: float = 1.0
    backoff_min_seconds: float = 1.0
    backoff_max_seconds: float = 10.0

    def __post_init__(self):
        """Validate retry values."""
        if self.max_attempts < 1:
            raise ValueError("retry.max_attempts must be >= 1")
        if self.backoff_multiplier <= 0:
            raise ValueError("retry.backoff_multiplier must be > 0")
        if self.backoff_min_seconds < 0:
            raise ValueError("retry.backoff_min_seconds must be >= 0")
        if self.backoff_max_seconds < self.backoff_min_seconds:
            raise ValueError("retry.backoff_max_seconds must be >= backoff_min_seconds")


@dataclass(frozen=True)
class QuotaSettings:
    """Free-tier allowance granted to new users."""
    free_generations: int = 3

    def __post_init__(self):
        if self.free_generations < 0:
            raise ValueError("quota.free_generations must be >= 0")


@dataclass(frozen=True)
class StorageSettings:
    database_path: str = DEFAULT_DB_PATH

    def __post_init__(self):
        if not self.database_path:
            raise ValueError("storage.database_path cannot be empty")


@dataclass(frozen=True)
class Settings:
    """Complete application settings."""
    generation: GenerationSettings = field(default_factory=GenerationSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    pricing: Dict[str, Dict[str, float]] = field(
        default_factory=lambda: {model: dict(rate) for model, rate in DEFAULT_RATES.items()}
    )
    quota: QuotaSettings = field(default_factory=QuotaSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)

    def __post_init__(self):
        """Validate that the configured model can be priced."""
        if self.generation.model not in self.pricing:
            raise ValueError(
                f"No pricing configured for generation model '{self.generation.model}'"
            )

    def pricing_table(self) -> PricingTable:
        return PricingTable.from_rates(self.pricing)


def default_settings() -> Settings:
    """Settings used when no config file is given."""
    return Settings()


_SECTIONS = {
    "generation": (GenerationSettings, {
        "model": str,
        "temperature": float,
        "resume_max_tokens": int,
        "cover_letter_max_tokens": int,
        "request_timeout_seconds": float,
    }),
    "retry": (RetrySettings, {
        "max_attempts": int,
        "backoff_multiplier": float,
        "backoff_min_seconds": float,
        "backoff_max_seconds": float,
    }),
    "quota": (QuotaSettings, {"free_generations": int}),
    "storage": (StorageSettings, {"database_path": str}),
}


def load_settings(path: str) -> Settings:
    """Load and validate settings from a YAML file.

    Strict validation ensures no silent misconfigurations: unknown keys,
    wrong types and out-of-range values are all rejected. Omitted
    sections and keys take their defaults.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated Settings object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = set(_SECTIONS) | {"pricing"}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    kwargs: Dict[str, Any] = {}
    for section, (settings_cls, schema) in _SECTIONS.items():
        if section in raw_config:
            kwargs[section] = settings_cls(**_parse_section(raw_config[section], section, schema))

    if "pricing" in raw_config:
        kwargs["pricing"] = _parse_pricing(raw_config["pricing"])

    return Settings(**kwargs)


def _parse_section(data: Optional[Dict], path: str, schema: Dict[str, type]) -> Dict[str, Any]:
    """Check keys and types of one settings section.

    Args:
        data: Section data from YAML
        path: Section name for error messages
        schema: Allowed keys mapped to their expected types

    Returns:
        Keyword arguments for the section's settings class

    Raises:
        ValueError: If the section is malformed
    """
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"'{path}' must be a dictionary")

    unknown_keys = set(data.keys()) - set(schema)
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    parsed = {}
    for key, value in data.items():
        expected = schema[key]
        if expected is str:
            if not isinstance(value, str):
                raise ValueError(f"'{key}' in {path} must be a string")
        elif expected is int:
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"'{key}' in {path} must be an integer")
        elif isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"'{key}' in {path} must be a number")
        parsed[key] = expected(value)
    return parsed


def _parse_pricing(data: Any) -> Dict[str, Dict[str, float]]:
    """Validate the per-model pricing map.

    Raises:
        ValueError: If a model entry is missing a rate or has a negative rate
    """
    if not isinstance(data, dict) or not data:
        raise ValueError("'pricing' must be a non-empty dictionary")

    pricing = {}
    for model, rates in data.items():
        path = f"pricing.{model}"
        if not isinstance(rates, dict):
            raise ValueError(f"'{path}' must be a dictionary")
        unknown_keys = set(rates.keys()) - {"input_per_1m", "output_per_1m"}
        if unknown_keys:
            raise ValueError(f"Unknown keys in {path}: {unknown_keys}")
        parsed = {}
        for key in ("input_per_1m", "output_per_1m"):
            if key not in rates:
                raise ValueError(f"Missing required '{key}' in {path}")
            value = rates[key]
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise ValueError(f"'{key}' in {path} must be a number >= 0")
            parsed[key] = float(value)
        pricing[str(model)] = parsed
    return pricing
