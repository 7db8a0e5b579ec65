# config/settings.py
import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


if os.getenv("HSC_ENV", "dev") == "dev":
    load_dotenv()


class Settings(BaseSettings):
    """
    Runtime configuration for the consolidation engine and HS matcher.

    Every field is defaulted. Values can be overridden with ``HSC_``-prefixed
    environment variables (``HSC_SIMILARITY_THRESHOLD=0.8``) or by passing
    keyword arguments, which is what the tests do.
    """

    model_config = SettingsConfigDict(env_prefix="HSC_", extra="ignore")

    # Clustering
    SIMILARITY_THRESHOLD: float = Field(default=0.75, ge=-1.0, le=1.0)

    # Category matching
    CONFIDENCE_THRESHOLD: float = Field(default=0.75, ge=0.0, le=1.0)
    CONFIDENCE_CEILING: float = Field(default=0.98, gt=0.0, lt=1.0)
    SIZE_BONUS_PER_ITEM: float = Field(default=0.02, ge=0.0)
    SIZE_BONUS_MAX: float = Field(default=0.1, ge=0.0)
    SECONDARY_MATCH_CONFIDENCE: float = Field(default=0.6, ge=0.0, le=1.0)
    DEFAULT_MATCH_CONFIDENCE: float = Field(default=0.5, ge=0.0, le=1.0)
    FUZZY_NAME_MIN_SIMILARITY: float = Field(default=0.4, ge=0.0, le=1.0)

    # HS-code matching
    HS_CONFIDENCE_THRESHOLD: float = Field(default=0.6, ge=0.0, le=1.0)
    HS_MAX_SUGGESTIONS: int = Field(default=5, ge=1)
    HS_PREFERRED_CHAPTER_BOOST: float = Field(default=0.1, ge=0.0)
    HS_CHAPTER_CONFIDENCE: float = Field(default=0.7, ge=0.0, le=1.0)

    # Caching
    USE_CACHING: bool = True
    CACHE_MAX_ENTRIES: int = Field(default=1000, ge=1)
    EMBEDDING_CACHE_TTL_MINUTES: float = Field(default=43200, gt=0)
    DECISION_CACHE_TTL_MINUTES: float = Field(default=60, gt=0)

    # Embedding retrieval
    EMBEDDING_MODEL_NAME: str = "sentence-transformers/all-MiniLM-L6-v2"
    EMBEDDING_DEVICE: str = "cpu"
    BATCH_SIZE: int = Field(default=10, ge=1)
    MAX_CONCURRENT_REQUESTS: int = Field(default=5, ge=1)
    EMBEDDING_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)

    # Optional LLM categorizer
    ENABLE_LLM: bool = False
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_API_URL: str = "https://api.anthropic.com/v1/messages"
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"
    ANTHROPIC_VERSION: str = "2023-06-01"
    LLM_TIMEOUT_SECONDS: float = Field(default=45.0, gt=0)
    LLM_MAX_EXAMPLES: int = Field(default=8, ge=1)

    # Logging knobs
    LOGGER_NAME: str = "hs-consolidation"
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_DIR: str = "logs"
    LOG_FILE_NAME: str = "hs_consolidation.log"
    LOG_MAX_BYTES: int = 50 * 1024 * 1024
    LOG_BACKUP_COUNT: int = 5

    # Prompts
    CATEGORIZE_SYSTEM_PROMPT: str = (
        "You assign a group of similar product listings to exactly ONE category "
        "from the catalog you are given.\n"
        "Rules:\n"
        "- Choose the category id from the provided list only; never invent one.\n"
        "- Judge from the product names and descriptions.\n"
        '- Return JSON ONLY: {"category_id":"<id>","confidence":0.0-1.0,"reasoning":"<short>"}\n'
        "- No code fences, no extra keys.\n"
    )

    @property
    def embedding_cache_ttl_seconds(self) -> float:
        return self.EMBEDDING_CACHE_TTL_MINUTES * 60.0

    @property
    def decision_cache_ttl_seconds(self) -> float:
        return self.DECISION_CACHE_TTL_MINUTES * 60.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
