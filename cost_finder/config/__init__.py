"""Cost finder configuration.

This package contains:
- settings: Environment variables and configuration
- secrets: Unified secret access (environment / .env)
- errors: Custom exceptions and error codes
"""

from cost_finder.config.settings import settings, Settings
from cost_finder.config.errors import (
    CostFinderError,
    ConfigurationError,
    ProviderError,
    MalformedProviderOutputError,
)
from cost_finder.config.secrets import get_secret, get_openai_api_key, get_exa_api_key

__all__ = [
    "settings",
    "Settings",
    "CostFinderError",
    "ConfigurationError",
    "ProviderError",
    "MalformedProviderOutputError",
    "get_secret",
    "get_openai_api_key",
    "get_exa_api_key",
]
