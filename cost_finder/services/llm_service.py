"""LLM service for the cost finder.

Provides LangChain/OpenAI integration for structured text generation.
"""

from typing import Optional, Type, TypeVar

import structlog
from langchain_core.exceptions import OutputParserException
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, ValidationError

from cost_finder.config.settings import settings
from cost_finder.config.errors import (
    ConfigurationError,
    ErrorCode,
    MalformedProviderOutputError,
    ProviderError,
)

logger = structlog.get_logger()

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class LLMService:
    """Service for LLM operations using LangChain.

    Provides a wrapper around ChatOpenAI with token tracking, structured
    output, and error classification.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        api_key: Optional[str] = None
    ):
        """Initialize LLMService.

        Args:
            model: Model name (default from settings).
            temperature: Temperature (default from settings).
            api_key: OpenAI API key (default from settings).
        """
        self.model = model or settings.llm_model
        self.temperature = temperature if temperature is not None else settings.llm_temperature
        self.api_key = api_key or settings.openai_api_key

        self._client: Optional[ChatOpenAI] = None
        self._total_tokens_used = 0

    @property
    def client(self) -> ChatOpenAI:
        """Get LangChain ChatOpenAI client (lazy initialization).

        Raises:
            ConfigurationError: If no API key is configured.
        """
        if self._client is None:
            if not self.api_key:
                raise ConfigurationError("OpenAI API key not configured", missing=["OPENAI_API_KEY"])
            self._client = ChatOpenAI(
                model=self.model,
                temperature=self.temperature,
                api_key=self.api_key
            )
        return self._client

    @property
    def total_tokens_used(self) -> int:
        """Get total tokens used across all calls."""
        return self._total_tokens_used

    def _classify_error(self, e: Exception) -> ProviderError:
        """Map a provider exception to a ProviderError with a specific code."""
        error_msg = str(e)
        lowered = error_msg.lower()

        if "rate_limit" in lowered or "rate limit" in lowered:
            return ProviderError(
                code=ErrorCode.LLM_RATE_LIMIT,
                message="OpenAI rate limit exceeded",
                provider="openai",
                details={"original_error": error_msg}
            )
        if "context_length" in lowered or "maximum context" in lowered:
            return ProviderError(
                code=ErrorCode.LLM_CONTEXT_TOO_LONG,
                message="Input too long for model context",
                provider="openai",
                details={"original_error": error_msg}
            )
        return ProviderError(
            code=ErrorCode.LLM_ERROR,
            message=f"LLM generation failed: {error_msg}",
            provider="openai",
            details={"original_error": error_msg}
        )

    async def generate_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: Type[SchemaT]
    ) -> SchemaT:
        """Generate a response constrained to a Pydantic schema.

        Args:
            system_prompt: System prompt with the rules to follow.
            user_prompt: User message with the data to work on.
            schema: Pydantic model the output must validate against.

        Returns:
            Instance of ``schema``.

        Raises:
            MalformedProviderOutputError: If the output fails schema validation.
            ProviderError: If the LLM call itself fails.
        """
        structured = self.client.with_structured_output(
            schema,
            method="function_calling",
            include_raw=True
        )
        messages = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=user_prompt)
        ]

        try:
            result = await structured.ainvoke(messages)
        except (ValidationError, OutputParserException) as e:
            raise MalformedProviderOutputError(
                f"LLM output did not match {schema.__name__}",
                provider="openai",
                details={"parse_error": str(e)[:500]}
            ) from e
        except Exception as e:
            raise self._classify_error(e) from e

        raw = result.get("raw")
        tokens_used = 0
        if raw is not None and getattr(raw, "response_metadata", None):
            tokens_used = raw.response_metadata.get("token_usage", {}).get("total_tokens", 0)
            self._total_tokens_used += tokens_used

        parsing_error = result.get("parsing_error")
        parsed = result.get("parsed")
        if parsing_error is not None or parsed is None:
            raise MalformedProviderOutputError(
                f"LLM output did not match {schema.__name__}",
                provider="openai",
                details={"parse_error": str(parsing_error)[:500] if parsing_error else "empty output"}
            )

        logger.info(
            "llm_structured_generated",
            model=self.model,
            schema=schema.__name__,
            tokens_used=tokens_used
        )
        return parsed
