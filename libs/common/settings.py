"""Application settings for the legal chat service."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from ``LEGALCHAT_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LEGALCHAT_",
        env_file=None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Core application settings
    app_env: Literal["development", "staging", "production", "test"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = False
    cors_allowed_origins: str = "http://localhost:3000,https://localhost:3000"

    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from string."""
        if not self.cors_allowed_origins.strip():
            return ["http://localhost:3000", "https://localhost:3000"]
        return [origin.strip() for origin in self.cors_allowed_origins.split(",") if origin.strip()]

    # Legal knowledge configuration
    jurisdiction: str = "Kenya"
    retrieval_relevance_threshold: float = 0.7
    retrieval_max_results: int = Field(default=5, ge=1, le=50)
    prompt_relevance_threshold: float = 0.7
    source_citation_threshold: float = 0.8

    # Conversation context
    recent_messages_limit: int = Field(default=5, ge=1, le=100)
    summary_min_messages: int = Field(default=5, ge=1)
    summary_window: int = Field(default=20, ge=1, le=200)

    # Time bounds for external calls (seconds)
    retrieval_timeout_seconds: float = Field(default=8.0, gt=0)
    generation_timeout_seconds: float = Field(default=60.0, gt=0)
    usage_check_timeout_seconds: float = Field(default=3.0, gt=0)

    # Generation
    default_confidence_score: float = 0.85
    openai_api_key: str | None = None
    openai_model: str = "gpt-4"
    openai_max_tokens: int = Field(default=2000, ge=1)
    openai_temperature: float = Field(default=0.3, ge=0.0, le=2.0)

    # Knowledge service
    knowledge_service_url: str = "http://localhost:8081"
    knowledge_service_token: str | None = None

    # Storage
    conversation_backend: Literal["memory", "firestore"] = "memory"
    firestore_project: str | None = None
    firestore_database: str = "(default)"
    firebase_admin_sdk_json: str | None = None
    firebase_admin_sdk_path: str | None = None

    # Usage ledger
    redis_url: str | None = None
    daily_token_limit: int = Field(default=2000, ge=0)
    monthly_token_limit: int = Field(default=50000, ge=0)

    @field_validator(
        "retrieval_relevance_threshold",
        "prompt_relevance_threshold",
        "source_citation_threshold",
        "default_confidence_score",
    )
    @classmethod
    def validate_unit_interval(cls, v: float) -> float:
        """Scores and thresholds live on the 0..1 relevance scale."""
        if not 0.0 <= v <= 1.0:
            raise ValueError("Value must be between 0.0 and 1.0")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
