"""
web_request tool for HTTP calls.

Uses httpx. HTTP error statuses are returned as error results that keep the
response body, so the model can see what the server said.
"""

from __future__ import annotations

import logging as _logging
import typing as _typing

import httpx as _httpx

import ronin.constants as _constants
import ronin.tools.base as base

_logger = _logging.getLogger(__name__)


class WebRequestTool(base.Tool):
    """Make an HTTP request and return status, headers and body."""

    def __init__(
        self,
        timeout: float = _constants.DEFAULT_WEB_TIMEOUT,
        transport: _httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self._timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return "web_request"

    @property
    def description(self) -> str:
        return "Make an HTTP request to a URL."

    @property
    def input_schema(self) -> dict[str, _typing.Any]:
        return {
            "type": "object",
            "properties": {
                "url": {
                    "type": "string",
                    "description": "URL to request",
                },
                "method": {
                    "type": "string",
                    "enum": ["GET", "POST", "PUT", "DELETE"],
                    "description": "HTTP method (default: GET)",
                },
                "headers": {
                    "type": "object",
                    "description": "Request headers (optional)",
                },
                "data": {
                    "type": ["object", "array", "string"],
                    "description": "Request body (optional); objects and arrays are sent as JSON",
                },
            },
            "required": ["url"],
        }

    async def execute(self, input: dict[str, _typing.Any]) -> base.ToolResult:
        url: str = input["url"]
        method: str = input.get("method", "GET")

        request_kwargs: dict[str, _typing.Any] = {"headers": input.get("headers") or {}}
        body = input.get("data")
        if isinstance(body, str):
            request_kwargs["content"] = body
        elif body is not None:
            request_kwargs["json"] = body

        _logger.debug("web_request %s %s", method, url)
        try:
            async with _httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.request(method, url, **request_kwargs)
        except _httpx.HTTPError as e:
            return base.ToolResult.error(f"Request failed: {e}")

        data = {
            "status": response.status_code,
            "status_text": response.reason_phrase,
            "headers": dict(response.headers),
            "data": _decode_body(response),
        }
        if response.is_error:
            return base.ToolResult.error(
                f"HTTP {response.status_code} {response.reason_phrase}", data
            )
        return base.ToolResult.ok(data)


def _decode_body(response: _httpx.Response) -> _typing.Any:
    """JSON bodies are decoded, everything else is returned as text."""
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        try:
            return response.json()
        except ValueError:
            pass
    return response.text
