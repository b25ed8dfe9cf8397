"""
Tool registry for in-process tools.

The registry provides a central place to register, look up, and list the
tools served by the built-in host.
"""

from __future__ import annotations

import logging as _logging
import pathlib as _pathlib
import typing as _typing

import httpx as _httpx

import ronin.tools.base as base

_logger = _logging.getLogger(__name__)

BUILTIN_TOOL_NAMES: tuple[str, ...] = (
    "file_read",
    "file_write",
    "file_list",
    "shell_execute",
    "web_request",
)
"""Every tool the built-in host can serve, in registration order."""


class ToolRegistry:
    """
    Registry for tool instances.

    Tools are registered by name and looked up for execution. Listing
    preserves registration order.
    """

    def __init__(self) -> None:
        self._tools: dict[str, base.Tool] = {}

    def register(self, tool: base.Tool) -> None:
        """
        Register a tool instance.

        Raises:
            ValueError: If a tool with the same name is already registered
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool

    def get(self, name: str) -> base.Tool | None:
        """Get a tool by name, or None if not found."""
        return self._tools.get(name)

    def list_tools(self) -> list[base.Tool]:
        """List all registered tools in registration order."""
        return list(self._tools.values())

    def list_names(self) -> list[str]:
        return list(self._tools.keys())

    def clear(self) -> None:
        self._tools.clear()

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __iter__(self) -> _typing.Iterator[base.Tool]:
        return iter(self.list_tools())


def create_builtin_registry(
    enabled: _typing.Iterable[str] | None = None,
    *,
    base_dir: _pathlib.Path | None = None,
    http_transport: _httpx.AsyncBaseTransport | None = None,
) -> ToolRegistry:
    """
    Create a registry holding the selected built-in tools.

    Args:
        enabled: Tool names to include (default: all of BUILTIN_TOOL_NAMES)
        base_dir: Directory relative paths resolve against (default: cwd)
        http_transport: Optional httpx transport for web_request (tests)

    Raises:
        ValueError: If an unknown tool name is requested
    """
    import ronin.tools.file as file_tools
    import ronin.tools.shell as shell_tools
    import ronin.tools.web as web_tools

    factories: dict[str, _typing.Callable[[], base.Tool]] = {
        "file_read": lambda: file_tools.FileReadTool(base_dir=base_dir),
        "file_write": lambda: file_tools.FileWriteTool(base_dir=base_dir),
        "file_list": lambda: file_tools.FileListTool(base_dir=base_dir),
        "shell_execute": lambda: shell_tools.ShellExecuteTool(working_dir=base_dir),
        "web_request": lambda: web_tools.WebRequestTool(transport=http_transport),
    }

    names = list(BUILTIN_TOOL_NAMES if enabled is None else enabled)
    unknown = [n for n in names if n not in factories]
    if unknown:
        raise ValueError(
            f"Unknown built-in tool(s): {', '.join(unknown)}. "
            f"Available: {', '.join(BUILTIN_TOOL_NAMES)}"
        )

    registry = ToolRegistry()
    for name in names:
        if name in registry:
            continue
        registry.register(factories[name]())
    _logger.debug("Built-in registry created with tools: %s", registry.list_names())
    return registry
