"""
Abstract base class for LLM providers.

A provider knows how to turn a conversation into an HTTP request for one
backend and hands back the raw response bytes. Interpreting those bytes is
the job of the stream dialect parser the provider creates.
"""

from __future__ import annotations

import abc as _abc
import logging as _logging
import typing as _typing

import httpx as _httpx

import ronin.api.types as types
import ronin.constants as _constants

_logger = _logging.getLogger(__name__)

if _typing.TYPE_CHECKING:
    import ronin.api.dialects as dialects


class TransportError(Exception):
    """The backend could not be reached or the stream broke mid-flight."""

    pass


class LLMProvider(_abc.ABC):
    """
    Abstract base for LLM providers.

    Implementations handle request formatting and HTTP for one backend
    while presenting a unified streaming interface.
    """

    dialect: _typing.ClassVar[str] = ""
    """Name of the stream dialect this backend speaks."""

    @property
    @_abc.abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 'anthropic', 'ollama')."""
        ...

    @property
    @_abc.abstractmethod
    def model(self) -> str:
        """Current model being used."""
        ...

    def create_parser(self) -> dialects.StreamDialectParser:
        """Create a fresh parser for one response stream."""
        import ronin.api.dialects as dialects

        return dialects.create_parser(self.dialect)

    @_abc.abstractmethod
    def stream(
        self,
        turns: list[types.ConversationTurn],
        *,
        system: str | None = None,
        tools: list[types.Tool] | None = None,
        max_tokens: int = _constants.DEFAULT_MAX_TOKENS,
    ) -> _typing.AsyncIterator[bytes]:
        """
        Send the conversation and yield raw response chunks as they arrive.

        Note: This method is not async itself, but returns an async iterator.
        Implementations should use 'async def' which returns an async generator.

        Args:
            turns: Conversation so far
            system: Optional system prompt
            tools: Optional list of tools available to the model
            max_tokens: Maximum tokens in the response

        Yields:
            Raw byte chunks, split wherever the network split them

        Raises:
            TransportError: On connection failure or a non-success status
        """
        ...

    async def close(self) -> None:  # noqa: B027
        """Release network resources. Override if the provider holds any."""
        pass


async def stream_post(
    client: _httpx.AsyncClient,
    path: str,
    payload: dict[str, _typing.Any],
    *,
    provider_name: str,
) -> _typing.AsyncIterator[bytes]:
    """
    POST a JSON payload and yield the response body as raw chunks.

    Shared by the HTTP providers. Connection problems, timeouts, and
    non-success statuses all surface as TransportError.
    """
    _logger.debug("%s request to %s (%d messages)", provider_name, path,
                  len(payload.get("messages", [])))
    try:
        async with client.stream("POST", path, json=payload) as response:
            if response.is_error:
                body = (await response.aread()).decode("utf-8", errors="replace")
                raise TransportError(
                    f"{provider_name} returned HTTP {response.status_code}: {body[:500]}"
                )
            async for chunk in response.aiter_bytes():
                yield chunk
    except _httpx.HTTPError as e:
        raise TransportError(f"{provider_name} request failed: {e}") from e
