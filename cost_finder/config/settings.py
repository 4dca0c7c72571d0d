"""Cost finder configuration settings.

Loads configuration from environment variables with sensible defaults.
Secrets are loaded via the secrets module.
"""

import os
from typing import Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

from cost_finder.config.errors import ConfigurationError

# Load .env file for non-secret configuration and local development keys
load_dotenv()


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Note: Secrets (OPENAI_API_KEY, EXA_API_KEY) are resolved through
    cost_finder.config.secrets; the properties below delegate to it.
    """

    # LLM Configuration (non-secrets)
    llm_model: str = field(default_factory=lambda: os.getenv("LLM_MODEL", "gpt-4o-mini"))
    llm_temperature: float = field(default_factory=lambda: float(os.getenv("LLM_TEMPERATURE", "0")))

    # Search Provider Configuration
    exa_base_url: str = field(default_factory=lambda: os.getenv("EXA_BASE_URL", "https://api.exa.ai"))
    exa_timeout_seconds: float = field(default_factory=lambda: float(os.getenv("EXA_TIMEOUT_SECONDS", "120")))
    search_num_results: int = field(default_factory=lambda: int(os.getenv("SEARCH_NUM_RESULTS", "6")))
    search_results_threshold: int = field(default_factory=lambda: int(os.getenv("SEARCH_RESULTS_THRESHOLD", "3")))
    min_confidence_score: float = field(default_factory=lambda: float(os.getenv("MIN_CONFIDENCE_SCORE", "0.6")))

    # Estimate Cache
    cache_path: str = field(default_factory=lambda: os.getenv("COST_CACHE_PATH", "llm_response_cache.json"))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # Internal: cached secret values (use the properties instead)
    _openai_api_key: Optional[str] = field(default=None, repr=False)
    _exa_api_key: Optional[str] = field(default=None, repr=False)

    @property
    def openai_api_key(self) -> Optional[str]:
        """Get OpenAI API key from the secrets module."""
        if self._openai_api_key is None:
            from cost_finder.config.secrets import get_openai_api_key
            self._openai_api_key = get_openai_api_key()
        return self._openai_api_key

    @property
    def exa_api_key(self) -> Optional[str]:
        """Get Exa API key from the secrets module."""
        if self._exa_api_key is None:
            from cost_finder.config.secrets import get_exa_api_key
            self._exa_api_key = get_exa_api_key()
        return self._exa_api_key

    def validate(self) -> None:
        """Validate required settings are present.

        Raises:
            ConfigurationError: If required credentials are missing.
        """
        missing = []
        if not self.exa_api_key:
            missing.append("EXA_API_KEY")
        if not self.openai_api_key:
            missing.append("OPENAI_API_KEY")
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}",
                missing=missing
            )


# Singleton settings instance
settings = Settings()
