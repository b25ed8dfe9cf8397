"""
JSON-RPC 2.0 tool hosts speaking the Model Context Protocol.

The protocol flow is the same whatever carries the messages:

1. ``initialize`` request, answered with server info and capabilities
2. ``notifications/initialized`` notification
3. ``tools/list`` (possibly paged with ``nextCursor``)
4. ``tools/call`` per invocation

Subclasses provide the transport: how to open it, send a request and wait
for its response, send a notification, and close it.
"""

from __future__ import annotations

import abc as _abc
import itertools as _itertools
import json as _json
import logging as _logging
import typing as _typing

import ronin
import ronin.constants as _constants
import ronin.hosts.base as base
import ronin.tools.base as tools_base

_logger = _logging.getLogger(__name__)


def unwrap_response(message: dict[str, _typing.Any], method: str) -> _typing.Any:
    """
    Return the ``result`` of a JSON-RPC response.

    Raises:
        RpcError: If the response carries an ``error`` member
    """
    error = message.get("error")
    if error is not None:
        if isinstance(error, dict):
            raise base.RpcError(
                f"'{method}' failed: {error.get('message', 'unknown error')}",
                code=error.get("code"),
                data=error.get("data"),
            )
        raise base.RpcError(f"'{method}' failed: {error}")
    return message.get("result")


def result_from_call(result: _typing.Any) -> tools_base.ToolResult:
    """
    Convert a ``tools/call`` result into a ToolResult.

    Text content parts are joined with newlines; other parts (images,
    resources) are kept as their JSON form.
    """
    if not isinstance(result, dict):
        return tools_base.ToolResult.ok(result)

    content = result.get("content")
    if isinstance(content, list):
        parts: list[str] = []
        for part in content:
            if isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text", "")))
            else:
                parts.append(_json.dumps(part, ensure_ascii=False))
        text: _typing.Any = "\n".join(parts)
    elif content is not None:
        text = content
    else:
        text = result.get("structuredContent", result)

    if result.get("isError"):
        return tools_base.ToolResult.error(str(text) or "Tool execution failed")
    return tools_base.ToolResult.ok(text)


class RpcToolHost(base.ToolHost):
    """Protocol logic shared by the child-process and network hosts."""

    def __init__(self, host_id: str, *, timeout: float = _constants.DEFAULT_HOST_TIMEOUT) -> None:
        super().__init__(host_id)
        self._timeout = timeout
        self._ids = _itertools.count(1)
        self.server_info: dict[str, _typing.Any] = {}

    # === Transport hooks ===

    @_abc.abstractmethod
    async def _open(self) -> None:
        """Open the transport. Raises HostConnectError."""
        ...

    @_abc.abstractmethod
    async def _send_request(self, request: dict[str, _typing.Any]) -> dict[str, _typing.Any]:
        """Send one request and return the matching response message."""
        ...

    @_abc.abstractmethod
    async def _send_notification(self, notification: dict[str, _typing.Any]) -> None:
        ...

    @_abc.abstractmethod
    async def _close(self) -> None:
        ...

    # === Protocol ===

    async def request(
        self,
        method: str,
        params: dict[str, _typing.Any] | None = None,
    ) -> _typing.Any:
        """Send a request and return its result."""
        request = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or {},
        }
        _logger.debug("[%s] -> %s (id %s)", self.host_id, method, request["id"])
        response = await self._send_request(request)
        return unwrap_response(response, method)

    async def notify(self, method: str, params: dict[str, _typing.Any] | None = None) -> None:
        notification: dict[str, _typing.Any] = {"jsonrpc": "2.0", "method": method}
        if params:
            notification["params"] = params
        await self._send_notification(notification)

    async def connect(self) -> None:
        await self._open()
        try:
            result = await self.request(
                "initialize",
                {
                    "protocolVersion": _constants.MCP_PROTOCOL_VERSION,
                    "capabilities": {},
                    "clientInfo": {"name": "ronin", "version": ronin.__version__},
                },
            )
            if isinstance(result, dict):
                self.server_info = result.get("serverInfo") or {}
            await self.notify("notifications/initialized")
        except base.HostError as e:
            await self._close()
            raise base.HostConnectError(self.host_id, f"handshake failed: {e}") from e

        _logger.debug("[%s] initialized (server: %s)", self.host_id,
                      self.server_info.get("name", "unknown"))

    async def list_tools(self) -> list[base.ToolDescriptor]:
        tools: list[base.ToolDescriptor] = []
        cursor: str | None = None
        while True:
            result = await self.request("tools/list", {"cursor": cursor} if cursor else {})
            if not isinstance(result, dict):
                raise base.RpcError("'tools/list' returned a malformed result")
            for item in result.get("tools") or []:
                if not isinstance(item, dict) or not isinstance(item.get("name"), str):
                    continue
                tools.append(base.ToolDescriptor(
                    name=item["name"],
                    description=str(item.get("description", "")),
                    input_schema=item.get("inputSchema") or {"type": "object", "properties": {}},
                    host_id=self.host_id,
                ))
            cursor = result.get("nextCursor")
            if not cursor:
                return tools

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, _typing.Any],
    ) -> tools_base.ToolResult:
        result = await self.request("tools/call", {"name": name, "arguments": arguments})
        return result_from_call(result)

    async def disconnect(self) -> None:
        await self._close()
