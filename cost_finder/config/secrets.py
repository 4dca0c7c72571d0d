"""API credentials for the search and generation providers.

Keys come from the process environment; ``cost_finder.config.settings``
loads a ``.env`` file into it on import. The per-provider accessors
memoize their result, so rotate keys with ``clear_secret_cache()``.
"""

import os
from functools import lru_cache
from typing import Optional

import structlog

logger = structlog.get_logger()


def get_secret(secret_id: str) -> Optional[str]:
    """Read one credential from the environment.

    Args:
        secret_id: Environment variable name, e.g. ``EXA_API_KEY``.

    Returns:
        The value, or None when unset or blank.
    """
    value = os.environ.get(secret_id) or None
    if value is None:
        logger.warning("secret_missing", secret_id=secret_id)
    else:
        logger.debug("secret_loaded", secret_id=secret_id)
    return value


@lru_cache(maxsize=1)
def get_openai_api_key() -> Optional[str]:
    """OpenAI key used by the cost aggregator."""
    return get_secret("OPENAI_API_KEY")


@lru_cache(maxsize=1)
def get_exa_api_key() -> Optional[str]:
    """Exa key used by both search passes and the lite cascade."""
    return get_secret("EXA_API_KEY")


def clear_secret_cache() -> None:
    get_openai_api_key.cache_clear()
    get_exa_api_key.cache_clear()
