"""Anthropic provider package."""

import ronin.api.providers.anthropic.provider as _provider

AnthropicProvider = _provider.AnthropicProvider

__all__ = ["AnthropicProvider"]
