"""Registry and factory for narrative generators."""

from functools import lru_cache

from patternlens.config.settings import ModelProvider, get_settings
from patternlens.insights.prompts import SYSTEM_PROMPT
from patternlens.models.anthropic_adapter import AnthropicNarrativeGenerator
from patternlens.models.base import NarrativeGenerator
from patternlens.utils.exceptions import ConfigurationError


@lru_cache
def get_narrative_generator(provider: ModelProvider | None = None) -> NarrativeGenerator:
    """Get a narrative generator for the specified provider.

    Args:
        provider: The model provider to use. If None, uses the default from settings.

    Returns:
        A configured narrative generator.

    Raises:
        ConfigurationError: If the API key for the provider is not configured.
    """
    settings = get_settings()

    if provider is None:
        provider = settings.default_model_provider

    api_key = settings.get_api_key(provider)
    if api_key is None:
        raise ConfigurationError(f"API key not configured for provider: {provider.value}")

    model_name = settings.get_model_name(provider)

    match provider:
        case ModelProvider.ANTHROPIC:
            return AnthropicNarrativeGenerator(
                api_key=api_key,
                model=model_name,
                system_prompt=SYSTEM_PROMPT,
                temperature=settings.insights.temperature,
            )
