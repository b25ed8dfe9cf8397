"""
In-process tool host.

Serves the built-in tools from a ToolRegistry. Input is validated against
each tool's schema before it runs, and any exception a tool raises is
turned into an error result.
"""

from __future__ import annotations

import logging as _logging
import pathlib as _pathlib
import typing as _typing

import httpx as _httpx

import ronin.constants as _constants
import ronin.hosts.base as base
import ronin.tools.base as tools_base
import ronin.tools.registry as registry

_logger = _logging.getLogger(__name__)


class BuiltinToolHost(base.ToolHost):
    """Host for the in-process tools (file, shell, web)."""

    transport = "in-process"

    def __init__(
        self,
        host_id: str = _constants.BUILTIN_HOST_ID,
        tools: _typing.Iterable[str] | None = None,
        *,
        base_dir: _pathlib.Path | None = None,
        http_transport: _httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            host_id: Id of this host
            tools: Tool names to serve (default: all built-in tools)
            base_dir: Directory relative paths resolve against (default: cwd)
            http_transport: Optional httpx transport for web_request (tests)
        """
        super().__init__(host_id)
        self._enabled = list(tools) if tools is not None else None
        self._base_dir = base_dir
        self._http_transport = http_transport
        self._registry: registry.ToolRegistry | None = None

    async def connect(self) -> None:
        try:
            self._registry = registry.create_builtin_registry(
                self._enabled,
                base_dir=self._base_dir,
                http_transport=self._http_transport,
            )
        except ValueError as e:
            raise base.HostConnectError(self.host_id, str(e)) from e

    async def list_tools(self) -> list[base.ToolDescriptor]:
        if self._registry is None:
            return []
        return [
            base.ToolDescriptor(
                name=tool.name,
                description=tool.description,
                input_schema=tool.input_schema,
                host_id=self.host_id,
            )
            for tool in self._registry
        ]

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, _typing.Any],
    ) -> tools_base.ToolResult:
        tool = self._registry.get(name) if self._registry is not None else None
        if tool is None:
            raise base.ToolNotFoundError(name)

        problem = tool.validate_input(arguments)
        if problem is not None:
            return tools_base.ToolResult.error(f"Invalid input for {name}: {problem}")

        try:
            return await tool.execute(arguments)
        except Exception as e:
            _logger.exception("Built-in tool %s raised", name)
            return tools_base.ToolResult.error(f"{name} failed: {e}")

    async def disconnect(self) -> None:
        if self._registry is not None:
            self._registry.clear()
            self._registry = None
