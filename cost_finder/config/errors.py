"""Exceptions raised by the cost estimation engine.

Every error carries a string ``code`` from :class:`ErrorCode` plus a
``details`` mapping so callers can serialize failures without parsing
messages.
"""

from typing import Any, Dict, List, Optional


class ErrorCode:
    """String codes attached to every CostFinderError."""

    # Setup
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    # Search provider
    SEARCH_PROVIDER_ERROR = "SEARCH_PROVIDER_ERROR"
    SEARCH_QUOTA_EXHAUSTED = "SEARCH_QUOTA_EXHAUSTED"

    # Generation provider
    LLM_ERROR = "LLM_ERROR"
    LLM_RATE_LIMIT = "LLM_RATE_LIMIT"
    LLM_CONTEXT_TOO_LONG = "LLM_CONTEXT_TOO_LONG"
    MALFORMED_PROVIDER_OUTPUT = "MALFORMED_PROVIDER_OUTPUT"

    # Persistence
    CACHE_WRITE_FAILED = "CACHE_WRITE_FAILED"


class CostFinderError(Exception):
    """Root of the engine's exception hierarchy.

    Attributes:
        code: One of the ErrorCode constants.
        message: Human readable summary.
        details: Extra context such as the provider name or file path.
    """

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form with ``code``, ``message`` and ``details`` keys."""
        return {"code": self.code, "message": self.message, "details": self.details}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ConfigurationError(CostFinderError):
    """Raised before any provider call when credentials are absent."""

    def __init__(
        self,
        message: str,
        missing: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.missing = list(missing or [])
        super().__init__(
            ErrorCode.CONFIGURATION_ERROR,
            message,
            {**(details or {}), "missing": self.missing},
        )


class ProviderError(CostFinderError):
    """A search or generation request failed or was refused."""

    def __init__(self, code: str, message: str, provider: str, details: Optional[Dict[str, Any]] = None):
        self.provider = provider
        super().__init__(code, message, {**(details or {}), "provider": provider})


class MalformedProviderOutputError(ProviderError):
    """Generation output could not be parsed into the expected schema."""

    def __init__(self, message: str, provider: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.MALFORMED_PROVIDER_OUTPUT, message, provider, details)
