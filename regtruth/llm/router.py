"""
LLM provider router / factory.

Builds the configured provider for a model role. Instances are cached per
(provider_name, role) so the HTTP client is reused across extraction calls.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from regtruth.llm.provider import LLMProvider

if TYPE_CHECKING:
    from regtruth.config import Settings

logger = logging.getLogger(__name__)


class ModelRole(str, Enum):
    EXTRACTION = "extraction"  # structured assertions from evidence text


_provider_cache: dict[str, LLMProvider] = {}


def get_llm_provider(
    role: ModelRole = ModelRole.EXTRACTION,
    settings: Settings | None = None,
) -> LLMProvider:
    """Return a cached LLMProvider for the configured provider and role.

    Raises:
        ValueError: If the provider is not supported or the API key is missing.
    """
    if settings is None:
        from regtruth.config import get_settings

        settings = get_settings()

    provider_name = settings.llm_provider.lower()
    cache_key = f"{provider_name}:{role.value}"
    if cache_key in _provider_cache:
        return _provider_cache[cache_key]

    if provider_name != "openai":
        raise ValueError(f"Unknown LLM provider: '{provider_name}'. Supported providers: openai")
    if not settings.llm_api_key:
        raise ValueError("LLM_API_KEY is required for the OpenAI provider.")

    from regtruth.llm.openai_provider import OpenAIProvider

    model = {ModelRole.EXTRACTION: settings.llm_model_extraction}[role]
    provider = OpenAIProvider(
        api_key=settings.llm_api_key,
        model=model,
        timeout=settings.llm_timeout,
        max_retries=settings.llm_max_retries,
    )
    _provider_cache[cache_key] = provider
    logger.info("Created LLM provider: %s role=%s model=%s", provider_name, role.value, model)
    return provider


def clear_provider_cache() -> None:
    """Clear the provider cache. Useful for testing."""
    _provider_cache.clear()
