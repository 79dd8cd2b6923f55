"""
Configuration management using pydantic-settings.

Loads settings from environment variables and .env files.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Extraction oracle
    llm_provider: str = Field(
        default="mock",
        description="Oracle provider: 'openai', 'claude', or 'mock' (rule-based only)",
    )
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API key")
    openai_extraction_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model for notification extraction/classification",
    )
    anthropic_extraction_model: str = Field(
        default="claude-3-5-sonnet-20241022",
        description="Anthropic model for notification extraction/classification",
    )
    oracle_timeout_seconds: float = Field(
        default=20.0,
        description="Upper bound for one oracle call before falling back to rules",
    )
    oracle_min_confidence: float = Field(
        default=0.5,
        description="Oracle extractions and classifications below this confidence are discarded",
    )

    # Organisation
    company_code: str = Field(default="NOVA", description="Code used in claim numbers")
    company_name: str = Field(default="Nova Carriers")
    default_currency: str = Field(default="USD")

    # Storage
    claims_db_path: Path = Field(default=Path("data/claims.db"), description="SQLite claim store")

    # Reminders
    reminder_window_days: int = Field(
        default=30,
        description="Upcoming window included in the due-reminders list",
    )

    log_level: str = Field(default="INFO")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to avoid re-reading environment on every call.
    """
    return Settings()
