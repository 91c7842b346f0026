"""Centralized application settings using pydantic-settings."""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.errors import ConfigurationError


class Settings(BaseSettings):
    """Credentials and tuning knobs for a labeling run."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Sample store
    store_api_key: str | None = Field(default=None, alias="EI_PROJECT_API_KEY")
    store_endpoint: str = Field(
        default="https://studio.edgeimpulse.com/v1",
        alias="EI_API_ENDPOINT",
        validate_default=True,
        description="Store API endpoint; a trailing /v1 is stripped",
    )
    store_timeout_seconds: float = Field(default=60.0, gt=0, alias="STORE_TIMEOUT_SECONDS")
    store_max_retries: int = Field(default=3, ge=1, alias="STORE_MAX_RETRIES")
    page_size: int = Field(default=1000, ge=1, alias="PAGE_SIZE")

    # Inference provider
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    llm_endpoint: str = Field(default="https://api.openai.com", alias="LLM_ENDPOINT")
    llm_model: str = Field(default="gpt-4o-2024-08-06", alias="LLM_MODEL")
    inference_timeout_seconds: float = Field(default=60.0, gt=0, alias="INFERENCE_TIMEOUT_SECONDS")
    inference_max_retries: int = Field(default=3, ge=1, alias="INFERENCE_MAX_RETRIES")

    # Reporting
    progress_interval_seconds: float = Field(default=3.0, gt=0, alias="PROGRESS_INTERVAL_SECONDS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    @field_validator("store_endpoint")
    @classmethod
    def _strip_version(cls, value: str) -> str:
        return value.rstrip("/").replace("/v1", "")

    def require_credentials(self) -> None:
        """Raise if a credential needed for a run is missing."""
        if not self.store_api_key:
            raise ConfigurationError("Missing EI_PROJECT_API_KEY")
        if not self.openai_api_key:
            raise ConfigurationError("Missing OPENAI_API_KEY")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def reload_settings() -> Settings:
    """Reload settings (useful for testing)."""
    get_settings.cache_clear()
    return get_settings()
