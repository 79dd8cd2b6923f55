"""
Configuration for the extraction oracle.

Handles API keys, model choice and the fallback thresholds.
"""

import os
from typing import Optional

from ..utils.config import get_settings


class OracleConfig:
    """Configuration for the optional language-model oracle."""

    def __init__(
        self,
        llm_provider: str = "mock",
        llm_model: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        min_confidence: Optional[float] = None,
    ):
        """
        Initialize oracle configuration.

        Args:
            llm_provider: 'openai', 'claude', or 'mock' (no oracle, rules only)
            llm_model: Specific model to use (default depends on provider)
            api_key: API key (if None, reads from environment)
            timeout: Seconds allowed per oracle call (default: ORACLE_TIMEOUT_SECONDS)
            min_confidence: Oracle output below this is discarded (default: ORACLE_MIN_CONFIDENCE)
        """
        self.llm_provider = (llm_provider or "mock").lower()
        settings = get_settings()

        self.timeout = settings.oracle_timeout_seconds if timeout is None else timeout
        self.min_confidence = settings.oracle_min_confidence if min_confidence is None else min_confidence

        if llm_model is None:
            if self.llm_provider == "claude":
                self.llm_model = settings.anthropic_extraction_model
            elif self.llm_provider == "openai":
                self.llm_model = settings.openai_extraction_model
            else:
                self.llm_model = "mock"
        else:
            self.llm_model = llm_model

        if api_key:
            self.api_key = api_key
        elif self.llm_provider == "claude":
            self.api_key = settings.anthropic_api_key or os.getenv("ANTHROPIC_API_KEY", "")
        elif self.llm_provider == "openai":
            self.api_key = settings.openai_api_key or os.getenv("OPENAI_API_KEY", "")
        else:
            self.api_key = ""

    @classmethod
    def from_env(cls) -> "OracleConfig":
        """Create config from environment variables / .env."""
        settings = get_settings()
        return cls(llm_provider=settings.llm_provider)

    def validate(self) -> bool:
        """Check if configuration can reach a real oracle."""
        if self.llm_provider in ["claude", "openai"]:
            return bool(self.api_key)
        return False

    def __repr__(self) -> str:
        return f"OracleConfig(provider={self.llm_provider!r}, model={self.llm_model!r}, timeout={self.timeout})"
