"""Application settings and configuration management."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/interview.db")
    CHECKPOINT_DIR: str = Field(default="data/checkpoints")
    LLM_CONFIG_PATH: str = Field(default="config/llm_routes.json")

    DEFAULT_LANGUAGE: str = "en"
    DEFAULT_MAX_DURATION_MINS: int = Field(default=10, ge=1)

    RUNTIME_KNOWLEDGE_TIMEOUT_MS: int = 1400
    INTENT_TIMEOUT_MS: int = 1500

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True, extra="ignore")


settings = Settings()
