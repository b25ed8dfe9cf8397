"""
Tool host interface.

A tool host is anything that can advertise tools and execute them: the
in-process built-in host, a child process speaking JSON-RPC over stdio, or
a remote server reached over HTTP. The manager treats them uniformly
through this interface.
"""

from __future__ import annotations

import abc as _abc
import dataclasses as _dataclasses
import typing as _typing

import ronin.api.types as api_types
import ronin.tools.base as tools_base

HostTransport = _typing.Literal["in-process", "child-process", "network-stream", "network-request"]

ExitCallback = _typing.Callable[[str, str], None]
"""Called with (host_id, reason) when a host dies on its own."""


# =============================================================================
# Exceptions
# =============================================================================


class HostError(Exception):
    """Base class for tool-host failures."""

    pass


class HostConnectError(HostError):
    """A host could not be started, reached, or initialized."""

    def __init__(self, host_id: str, message: str) -> None:
        self.host_id = host_id
        super().__init__(f"Host '{host_id}': {message}")


class HostNotFoundError(HostError):
    """No host with this id is known to the manager."""

    def __init__(self, host_id: str) -> None:
        self.host_id = host_id
        super().__init__(f"Host '{host_id}' not found")


class ToolNotFoundError(HostError):
    """No connected host provides a tool with this name."""

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' not found")


class RpcError(HostError):
    """A JSON-RPC request failed: error response, timeout, or bad reply."""

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        data: _typing.Any = None,
    ) -> None:
        self.code = code
        self.data = data
        super().__init__(message if code is None else f"{message} (code {code})")


# =============================================================================
# Types
# =============================================================================


@_dataclasses.dataclass
class ToolDescriptor:
    """A tool as advertised by a host."""

    name: str
    """Tool name, unique across connected hosts."""

    description: str
    """Human-readable description for the model."""

    input_schema: dict[str, _typing.Any]
    """JSON schema of the tool's input."""

    host_id: str
    """Host that serves this tool."""

    def to_api_tool(self) -> api_types.Tool:
        """Schema form sent to the model."""
        return api_types.Tool(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema,
        )

    def to_dict(self) -> dict[str, _typing.Any]:
        return _dataclasses.asdict(self)


class ToolHost(_abc.ABC):
    """
    Abstract base for tool hosts.

    Lifecycle: connect() once, then any number of list_tools() and
    call_tool(), then disconnect(). disconnect() is best-effort and safe to
    call on a host that never finished connecting.
    """

    transport: _typing.ClassVar[HostTransport]

    def __init__(self, host_id: str) -> None:
        self.host_id = host_id

    @_abc.abstractmethod
    async def connect(self) -> None:
        """
        Start or reach the host and complete any handshake.

        Raises:
            HostConnectError: If the host cannot be brought up
        """
        ...

    @_abc.abstractmethod
    async def list_tools(self) -> list[ToolDescriptor]:
        ...

    @_abc.abstractmethod
    async def call_tool(
        self,
        name: str,
        arguments: dict[str, _typing.Any],
    ) -> tools_base.ToolResult:
        """
        Execute one tool.

        Tool-level failures come back as error results; failures of the
        host itself (dead process, broken connection) raise HostError.
        """
        ...

    @_abc.abstractmethod
    async def disconnect(self) -> None:
        ...

    @property
    def in_flight(self) -> bool:
        """Whether a call is currently outstanding on this host."""
        return False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.host_id}>"
