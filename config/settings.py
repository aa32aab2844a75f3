"""Application settings and configuration management."""
from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/interview.db")
    APP_CONFIG_PATH: str = Field(default="app_config.json")
    LLM_ROUTE: str = "default"

    MAX_QUESTIONS: int = Field(default=5, ge=1)
    CONTEXT_MESSAGES: int = Field(default=10, ge=1)
    HISTORY_LIMIT: int = Field(default=50, ge=1)
    PROMPT_CACHE_TTL_SECONDS: float = Field(default=300.0, ge=0.0)

    PROCEED_THRESHOLD: int = Field(default=70, ge=0, le=100)
    REJECT_THRESHOLD: int = Field(default=50, ge=0, le=100)

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True, extra="ignore")

    @model_validator(mode="after")
    def _check_thresholds(self) -> "Settings":
        if self.REJECT_THRESHOLD > self.PROCEED_THRESHOLD:
            raise ValueError("REJECT_THRESHOLD must not exceed PROCEED_THRESHOLD")
        return self


settings = Settings()
