"""
Settings module for environment-aware configuration.

Manages API keys, the model chain, reference acquisition, gate thresholds
and ops counter persistence.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from . import constants


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # LLM API Keys
    google_api_key: str = ""
    gemini_api_key: str = ""

    # Model chain
    primary_model: str = constants.LLM_MODEL_PRIMARY
    fallback_models: list[str] = Field(
        default_factory=lambda: list(constants.LLM_MODEL_FALLBACKS)
    )
    llm_temperature: float = constants.LLM_TEMPERATURE
    model_timeout_s: float = constants.MODEL_TIMEOUT_S
    request_timeout_s: float = constants.REQUEST_TIMEOUT_S

    # Environment Configuration
    environment: Literal["dev", "test", "prod"] = "dev"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_file: Optional[Path] = None

    # Reference acquisition
    reference_limit: int = constants.REFERENCE_LIMIT
    reference_timeout_s: float = constants.REFERENCE_TIMEOUT_S
    reference_cache_ttl_s: float = constants.REFERENCE_CACHE_TTL_S
    reference_fetch_concurrency: int = constants.REFERENCE_FETCH_CONCURRENCY
    feed_language: str = "en-US"
    feed_country: str = "US"

    # Similarity thresholds
    similarity_title_jaccard: float = constants.SIMILARITY_TITLE_JACCARD
    similarity_lead_jaccard: float = constants.SIMILARITY_LEAD_JACCARD
    similarity_lead_signature: float = constants.SIMILARITY_LEAD_SIGNATURE
    similarity_lead_composite: float = constants.SIMILARITY_LEAD_COMPOSITE
    similarity_span_length: int = constants.SIMILARITY_SPAN_LENGTH
    similarity_span_step: int = constants.SIMILARITY_SPAN_STEP

    # Per-mode constraints
    title_max_chars: int = constants.TITLE_MAX_CHARS
    news_title_max_chars: int = constants.NEWS_TITLE_MAX_CHARS
    draft_content_max_chars: int = constants.DRAFT_CONTENT_MAX_CHARS
    news_content_max_chars: int = constants.NEWS_CONTENT_MAX_CHARS
    longform_min_sentences: int = constants.LONGFORM_MIN_SENTENCES

    # Ops counters
    ops_dir: Path = Path("outputs/ops")
    ops_flush_debounce_s: float = constants.OPS_FLUSH_DEBOUNCE_S

    @property
    def api_key(self) -> str:
        """Gemini API key, whichever variable it was configured under."""
        return self.google_api_key or self.gemini_api_key

    @property
    def model_chain(self) -> list[str]:
        """Primary model followed by deduplicated fallbacks."""
        chain = [self.primary_model]
        for model in self.fallback_models:
            if model and model not in chain:
                chain.append(model)
        return chain

    @property
    def ops_snapshot_path(self) -> Path:
        return self.ops_dir / "snapshot.json"

    @property
    def ops_log_path(self) -> Path:
        return self.ops_dir / "events.jsonl"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings
    """
    return Settings()
