"""
Anthropic Messages API provider.

Streams ``/v1/messages`` as server-sent events. Conversation turns are
already in Anthropic's block layout, so formatting is mostly a matter of
dropping empty text that the API would reject.
"""

from __future__ import annotations

import logging as _logging
import os as _os
import typing as _typing

import httpx as _httpx

import ronin.api.base as base
import ronin.api.types as types
import ronin.constants as _constants

_logger = _logging.getLogger(__name__)


class AnthropicProvider(base.LLMProvider):
    """
    Anthropic API provider.

    Reads ANTHROPIC_API_KEY when no key is passed explicitly.
    """

    DEFAULT_BASE_URL = "https://api.anthropic.com"

    dialect = "anthropic-sse"

    def __init__(
        self,
        model: str = _constants.DEFAULT_MODEL,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        timeout: float = _constants.DEFAULT_PROVIDER_TIMEOUT,
        transport: _httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the Anthropic provider.

        Args:
            model: Model name (e.g., 'claude-sonnet-4-20250514').
            api_key: API key. Defaults to the ANTHROPIC_API_KEY env var.
            base_url: Override the API endpoint (proxies, gateways).
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).

        Raises:
            ValueError: If no API key is available.
        """
        self._api_key = api_key or _os.environ.get("ANTHROPIC_API_KEY")
        if not self._api_key:
            raise ValueError(
                "Anthropic API key required. Set ANTHROPIC_API_KEY or pass api_key."
            )

        self._model = model
        self._base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self._client = _httpx.AsyncClient(
            base_url=self._base_url,
            headers={
                "x-api-key": self._api_key,
                "anthropic-version": _constants.ANTHROPIC_API_VERSION,
                "content-type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "anthropic"

    @property
    def model(self) -> str:
        return self._model

    async def stream(
        self,
        turns: list[types.ConversationTurn],
        *,
        system: str | None = None,
        tools: list[types.Tool] | None = None,
        max_tokens: int = _constants.DEFAULT_MAX_TOKENS,
    ) -> _typing.AsyncIterator[bytes]:
        """Stream a Messages API response as raw SSE bytes."""
        payload = self._build_payload(turns, system, tools, max_tokens)
        async for chunk in base.stream_post(
            self._client, "/v1/messages", payload, provider_name=self.name
        ):
            yield chunk

    def _build_payload(
        self,
        turns: list[types.ConversationTurn],
        system: str | None,
        tools: list[types.Tool] | None,
        max_tokens: int,
    ) -> dict[str, _typing.Any]:
        payload: dict[str, _typing.Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "messages": self._format_messages(turns),
            "stream": True,
        }
        if system:
            payload["system"] = system
        if tools:
            payload["tools"] = [t.to_anthropic_format() for t in tools]
        return payload

    @staticmethod
    def _format_messages(turns: list[types.ConversationTurn]) -> list[dict[str, _typing.Any]]:
        """Convert turns to Messages API format, skipping empty assistant text."""
        messages: list[dict[str, _typing.Any]] = []
        for turn in turns:
            blocks = [
                b.to_dict()
                for b in turn.blocks
                if not (b.type == "text" and not b.text)
            ]
            if not blocks:
                continue
            if isinstance(turn.content, str):
                messages.append({"role": turn.role, "content": turn.content})
            else:
                messages.append({"role": turn.role, "content": blocks})
        return messages

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
