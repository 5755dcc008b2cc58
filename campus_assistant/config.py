"""Configuration helpers for the campus assistant."""

from __future__ import annotations

from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

TEMPLATE_PROVIDER = "template"


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    service_enabled: bool = Field(default=False, alias="LLM_SERVICE_ENABLED")
    max_tokens: int = Field(default=2000, ge=1, alias="LLM_MAX_TOKENS")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, alias="LLM_TEMPERATURE")
    typing_speed: int = Field(default=30, alias="LLM_TYPING_SPEED")
    debug: bool = Field(default=False, alias="DEBUG_LLM")
    environment: str = Field(default="development", alias="APP_ENV")

    llm_provider: str = Field(default="deepseek", alias="LLM_PROVIDER")
    deepseek_api_key: Optional[str] = Field(default=None, alias="DEEPSEEK_API_KEY")
    deepseek_model: str = Field(default="deepseek-chat", alias="DEEPSEEK_MODEL")
    deepseek_base_url: str = Field(
        default="https://api.deepseek.com/v1", alias="DEEPSEEK_BASE_URL"
    )
    provider_timeout: float = Field(default=60.0, gt=0, alias="LLM_TIMEOUT_SECONDS")
    context_turns: int = Field(default=5, ge=0, le=5, alias="LLM_CONTEXT_TURNS")

    articles_api_url: str = Field(
        default="http://localhost:3000/api/articles", alias="ARTICLES_API_URL"
    )
    articles_timeout: float = Field(default=10.0, gt=0, alias="ARTICLES_TIMEOUT_SECONDS")
    article_cache_ttl: float = Field(default=300.0, ge=0, alias="ARTICLE_CACHE_TTL_SECONDS")
    article_search_enabled: bool = Field(default=True, alias="ARTICLE_SEARCH_ENABLED")
    article_search_limit: int = Field(default=3, ge=1, alias="ARTICLE_SEARCH_LIMIT")

    stream_delay_min: float = Field(default=0.05, ge=0, alias="STREAM_DELAY_MIN_SECONDS")
    stream_delay_max: float = Field(default=0.15, ge=0, alias="STREAM_DELAY_MAX_SECONDS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def _order_delay_bounds(self) -> "Settings":
        if self.stream_delay_max < self.stream_delay_min:
            raise ValueError("STREAM_DELAY_MAX_SECONDS must be >= STREAM_DELAY_MIN_SECONDS")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def provider_enabled(self) -> bool:
        return self.llm_provider.lower() != TEMPLATE_PROVIDER

    @property
    def provider_model(self) -> str:
        return self.deepseek_model

    def api_key_preview(self) -> str:
        """First eight characters of the provider key, never the whole key."""
        if not self.deepseek_api_key:
            return "not set"
        return f"{self.deepseek_api_key[:8]}..."


__all__ = ["Settings", "TEMPLATE_PROVIDER"]
