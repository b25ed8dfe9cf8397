"""
Provider factory for creating LLM providers.

Provider selection (in order of precedence):
1. Explicit `provider` argument
2. `provider.name` from Settings (RONIN_PROVIDER__NAME)
3. The built-in default (anthropic)
"""

from __future__ import annotations

import logging as _logging
import typing as _typing

import httpx as _httpx

import ronin.api.base as base
import ronin.constants as _constants

_logger = _logging.getLogger(__name__)

if _typing.TYPE_CHECKING:
    import ronin.config.settings as settings_module

BUILTIN_PROVIDER_TYPES: dict[str, str] = {
    "anthropic": "Anthropic Messages API (server-sent events)",
    "ollama": "Ollama native chat API (newline-delimited JSON)",
    "openai": "Any OpenAI-compatible chat-completions server",
}
"""Provider names accepted by create_provider, with one-line descriptions."""


def create_provider(
    provider: str | None = None,
    model: str | None = None,
    api_key: str | None = None,
    *,
    settings: settings_module.Settings | None = None,
    transport: _httpx.AsyncBaseTransport | None = None,
) -> base.LLMProvider:
    """
    Create an LLM provider based on configuration.

    Args:
        provider: Provider name ('anthropic', 'ollama', 'openai')
        model: Model to use (provider-specific format)
        api_key: API key (defaults to the key held in settings / environment)
        settings: Settings to read defaults from (loaded if not given)
        transport: Optional httpx transport passed to the provider (tests)

    Returns:
        Configured LLMProvider instance

    Raises:
        ValueError: If the provider is unknown or a required API key is missing
    """
    if settings is None:
        import ronin.config as config

        settings = config.Settings()

    name = (provider or settings.provider.name or _constants.DEFAULT_PROVIDER).lower()
    resolved_model = model or settings.provider.model
    _logger.debug("Creating provider '%s' (model: %s)", name, resolved_model or "default")

    common: dict[str, _typing.Any] = {
        "base_url": settings.provider.base_url,
        "timeout": settings.provider.timeout,
        "transport": transport,
    }
    if resolved_model:
        common["model"] = resolved_model

    if name == "anthropic":
        import ronin.api.providers.anthropic.provider as anthropic_provider

        return anthropic_provider.AnthropicProvider(
            api_key=api_key or settings.anthropic_api_key,
            **common,
        )

    if name == "ollama":
        import ronin.api.providers.ollama.provider as ollama_provider

        return ollama_provider.OllamaProvider(api_key=api_key, **common)

    if name == "openai":
        import ronin.api.providers.openai_compat.provider as openai_provider

        return openai_provider.OpenAICompatibleProvider(
            api_key=api_key or settings.openai_api_key,
            **common,
        )

    raise ValueError(
        f"Unknown provider: {name}. "
        f"Available: {', '.join(sorted(BUILTIN_PROVIDER_TYPES))}."
    )


def get_available_providers() -> list[dict[str, str]]:
    """List the built-in providers with their descriptions."""
    return [
        {"name": name, "description": description}
        for name, description in sorted(BUILTIN_PROVIDER_TYPES.items())
    ]
