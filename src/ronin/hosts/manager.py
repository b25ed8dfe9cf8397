"""
Tool host manager.

Tracks every configured host, connects and disconnects them, and routes
tool calls to the host that provides each tool. Tool names are resolved
when a host connects: the last host to connect wins a name collision.

Configuration is read through an injected loader so that reload() can pick
up edits without the manager knowing where the configuration lives.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import datetime as _datetime
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import httpx as _httpx

import ronin.api.types as api_types
import ronin.hosts.base as base
import ronin.hosts.builtin as builtin
import ronin.hosts.config as host_config
import ronin.hosts.http as http
import ronin.hosts.stdio as stdio
import ronin.tools.base as tools_base

_logger = _logging.getLogger(__name__)

HostStatus = _typing.Literal["connected", "disabled", "failed"]

ConfigLoader = _typing.Callable[[], dict[str, host_config.HostConfig]]

HostFactory = _typing.Callable[..., base.ToolHost]


def _now() -> _datetime.datetime:
    return _datetime.datetime.now(_datetime.UTC)


# =============================================================================
# Result types
# =============================================================================


@_dataclasses.dataclass
class HostConnection:
    """State of one tracked host."""

    host_id: str
    transport: base.HostTransport
    status: HostStatus
    last_error: str | None = None
    tool_names: list[str] = _dataclasses.field(default_factory=list)
    connected_at: _datetime.datetime | None = None
    failed_at: _datetime.datetime | None = None
    config: host_config.HostConfig | None = _dataclasses.field(default=None, repr=False)
    host: base.ToolHost | None = _dataclasses.field(default=None, repr=False)

    def to_dict(self) -> dict[str, _typing.Any]:
        return {
            "host_id": self.host_id,
            "transport": self.transport,
            "status": self.status,
            "last_error": self.last_error,
            "tool_names": list(self.tool_names),
            "tool_count": len(self.tool_names),
            "connected_at": self.connected_at.isoformat() if self.connected_at else None,
            "failed_at": self.failed_at.isoformat() if self.failed_at else None,
        }


@_dataclasses.dataclass
class ConnectOutcome:
    """Result of one connection attempt made by enable() or reload()."""

    host_id: str
    success: bool
    tool_count: int = 0
    error: str | None = None


@_dataclasses.dataclass
class DisconnectResult:
    tool_count: int
    error: str | None = None


@_dataclasses.dataclass
class ReloadResult:
    """What reload() did, by host id."""

    added: list[str] = _dataclasses.field(default_factory=list)
    removed: list[str] = _dataclasses.field(default_factory=list)
    existing: list[str] = _dataclasses.field(default_factory=list)
    changed: list[str] = _dataclasses.field(default_factory=list)
    disabled: list[str] = _dataclasses.field(default_factory=list)
    outcomes: list[ConnectOutcome] = _dataclasses.field(default_factory=list)

    @property
    def failed(self) -> list[ConnectOutcome]:
        return [o for o in self.outcomes if not o.success]


class HostObserver:
    """
    Receives host lifecycle notifications.

    All methods are no-ops; override the ones you care about.
    """

    def on_host_connected(self, connection: HostConnection) -> None:  # noqa: B027
        pass

    def on_host_disconnected(self, host_id: str, tool_count: int) -> None:  # noqa: B027
        pass

    def on_host_failed(self, host_id: str, error: str) -> None:  # noqa: B027
        pass

    def on_tool_collision(  # noqa: B027
        self,
        tool_name: str,
        previous_host_id: str,
        new_host_id: str,
    ) -> None:
        pass


# =============================================================================
# Host factory
# =============================================================================


def create_host(
    host_id: str,
    config: host_config.HostConfig,
    *,
    on_exit: base.ExitCallback | None = None,
    http_transport: _httpx.AsyncBaseTransport | None = None,
    base_dir: _pathlib.Path | None = None,
) -> base.ToolHost:
    """
    Build an unconnected host for a configuration entry.

    Args:
        host_id: Id of the new host
        config: Validated host configuration
        on_exit: Exit callback for child-process hosts
        http_transport: httpx transport for network hosts and web_request
        base_dir: Base directory for the built-in file tools

    Raises:
        ValueError: If the transport is not recognized
    """
    if isinstance(config, host_config.InProcessHostConfig):
        return builtin.BuiltinToolHost(
            host_id,
            config.tools,
            base_dir=base_dir,
            http_transport=http_transport,
        )
    if isinstance(config, host_config.ChildProcessHostConfig):
        return stdio.ChildProcessHost(
            host_id,
            config.command,
            config.args,
            cwd=config.cwd,
            env=config.env,
            timeout=config.timeout,
            on_exit=on_exit,
        )
    if isinstance(config, host_config.NetworkHostConfig):
        host_class = (
            http.NetworkRequestHost
            if config.transport == "network-request"
            else http.NetworkStreamHost
        )
        return host_class(
            host_id,
            config.url,
            headers=config.headers,
            timeout=config.timeout,
            transport=http_transport,
        )
    raise ValueError(f"Unknown host transport: {getattr(config, 'transport', config)!r}")


# =============================================================================
# Manager
# =============================================================================


class ToolHostManager:
    """Connects tool hosts and routes tool calls to them."""

    def __init__(
        self,
        loader: ConfigLoader | None = None,
        *,
        observer: HostObserver | None = None,
        host_factory: HostFactory | None = None,
        http_transport: _httpx.AsyncBaseTransport | None = None,
        base_dir: _pathlib.Path | None = None,
    ) -> None:
        """
        Args:
            loader: Returns the current host configuration (default: built-in only)
            observer: Lifecycle notifications
            host_factory: Builds hosts from configs (default: create_host)
            http_transport: httpx transport passed to network hosts (tests)
            base_dir: Base directory for the built-in file tools
        """
        self._loader = loader or host_config.default_hosts
        self._observer = observer or HostObserver()
        self._host_factory = host_factory or create_host
        self._http_transport = http_transport
        self._base_dir = base_dir

        self._connections: dict[str, HostConnection] = {}
        self._routes: dict[str, base.ToolDescriptor] = {}
        self._disabled: set[str] = set()

    # === Lifecycle ===

    async def initialize(self) -> ReloadResult:
        """Connect every configured host."""
        return await self.reload()

    async def shutdown(self) -> None:
        """Disconnect every connected host."""
        for host_id in list(self._connections):
            connection = self._connections[host_id]
            if connection.status == "connected":
                await self.disconnect(host_id)
        _logger.debug("Tool host manager shut down")

    async def connect(self, host_id: str, config: host_config.HostConfig) -> HostConnection:
        """
        Connect a host and register its tools.

        Connecting a host that is already connected does nothing.

        Raises:
            HostConnectError: If the host cannot be started or initialized
        """
        existing = self._connections.get(host_id)
        if existing is not None and existing.status == "connected":
            return existing

        try:
            host = self._host_factory(
                host_id,
                config,
                on_exit=self._on_host_exit,
                http_transport=self._http_transport,
                base_dir=self._base_dir,
            )
        except ValueError as e:
            self._record_failure(host_id, config, str(e))
            raise base.HostConnectError(host_id, str(e)) from e

        try:
            await host.connect()
            descriptors = await host.list_tools()
        except Exception as e:
            await self._teardown(host)
            message = str(e) or type(e).__name__
            self._record_failure(host_id, config, message)
            if isinstance(e, base.HostConnectError):
                raise
            raise base.HostConnectError(host_id, message) from e

        connection = HostConnection(
            host_id=host_id,
            transport=config.transport,
            status="connected",
            tool_names=[d.name for d in descriptors],
            connected_at=_now(),
            config=config,
            host=host,
        )
        self._connections[host_id] = connection
        for descriptor in descriptors:
            self._register(descriptor)

        _logger.info("Connected host '%s' (%s) with %d tools",
                     host_id, config.transport, len(descriptors))
        self._observer.on_host_connected(connection)
        return connection

    async def disconnect(self, host_id: str) -> DisconnectResult:
        """
        Disconnect a host and remove its tools.

        Teardown is best-effort: the tools are removed even if the host
        fails to shut down cleanly, and the failure is reported in the
        result.

        Raises:
            HostNotFoundError: If the host is not tracked
        """
        connection = self._connections.get(host_id)
        if connection is None:
            raise base.HostNotFoundError(host_id)

        tool_count = self._unregister_host(host_id)
        error: str | None = None
        if connection.host is not None:
            error = await self._teardown(connection.host)

        del self._connections[host_id]
        _logger.info("Disconnected host '%s' (%d tools removed)", host_id, tool_count)
        self._observer.on_host_disconnected(host_id, tool_count)
        return DisconnectResult(tool_count=tool_count, error=error)

    async def enable(self, host_id: str) -> ConnectOutcome:
        """
        Clear the disabled marker and connect from current configuration.

        Raises:
            HostNotFoundError: If the host is not in the configuration
        """
        configs = self._loader()
        config = configs.get(host_id)
        if config is None:
            raise base.HostNotFoundError(host_id)

        self._disabled.discard(host_id)
        if not config.enabled:
            return ConnectOutcome(
                host_id, success=False, error="host is disabled in configuration"
            )

        existing = self._connections.get(host_id)
        if existing is not None and existing.status != "connected":
            del self._connections[host_id]
        return await self._try_connect(host_id, config)

    async def disable(self, host_id: str) -> DisconnectResult:
        """
        Disconnect a host and keep it disconnected across reloads.

        Raises:
            HostNotFoundError: If the host is not tracked
        """
        connection = self._connections.get(host_id)
        if connection is None:
            raise base.HostNotFoundError(host_id)

        self._disabled.add(host_id)
        if connection.status == "connected":
            result = await self.disconnect(host_id)
        else:
            result = DisconnectResult(tool_count=0)
        self._connections[host_id] = HostConnection(
            host_id=host_id,
            transport=connection.transport,
            status="disabled",
            config=connection.config,
        )
        return result

    async def reload(self) -> ReloadResult:
        """
        Re-read configuration and bring connected hosts in line with it.

        Never raises for individual host failures; see ReloadResult.failed.
        """
        configs = self._loader()
        result = ReloadResult()

        for host_id in list(self._connections):
            if host_id in configs:
                continue
            connection = self._connections[host_id]
            if connection.status == "connected":
                await self.disconnect(host_id)
                result.removed.append(host_id)
            else:
                del self._connections[host_id]
            self._disabled.discard(host_id)

        for host_id, config in configs.items():
            connection = self._connections.get(host_id)

            if host_id in self._disabled or not config.enabled:
                if connection is not None and connection.status == "connected":
                    await self.disconnect(host_id)
                self._connections[host_id] = HostConnection(
                    host_id=host_id,
                    transport=config.transport,
                    status="disabled",
                    config=config,
                )
                result.disabled.append(host_id)
                continue

            if connection is not None and connection.status == "connected":
                if connection.config == config:
                    result.existing.append(host_id)
                    continue
                _logger.info("Configuration of host '%s' changed, reconnecting", host_id)
                await self.disconnect(host_id)
                result.changed.append(host_id)
            else:
                if connection is not None:
                    del self._connections[host_id]
                result.added.append(host_id)

            result.outcomes.append(await self._try_connect(host_id, config))

        _logger.debug(
            "Reload: added=%s removed=%s existing=%s changed=%s disabled=%s",
            result.added, result.removed, result.existing, result.changed, result.disabled,
        )
        return result

    async def interrupt(self) -> list[str]:
        """
        Stop every host with a call in flight.

        Used when the caller abandons a tool call: the host is terminated
        and marked failed with its tools removed. Returns the ids stopped.
        """
        stopped: list[str] = []
        for host_id, connection in list(self._connections.items()):
            host = connection.host
            if connection.status != "connected" or host is None or not host.in_flight:
                continue
            _logger.warning("Interrupting host '%s' with a call in flight", host_id)
            self._unregister_host(host_id)
            await self._teardown(host)
            self._mark_failed(connection, "interrupted")
            stopped.append(host_id)
        return stopped

    async def test_connection(
        self,
        host_id: str,
        config: host_config.HostConfig,
    ) -> dict[str, _typing.Any]:
        """
        Connect a throwaway host, list its tools, and disconnect it.

        The manager's own state is not touched.
        """
        try:
            host = self._host_factory(
                host_id,
                config,
                on_exit=None,
                http_transport=self._http_transport,
                base_dir=self._base_dir,
            )
        except ValueError as e:
            return {"success": False, "tool_count": 0, "tools": [], "error": str(e)}

        try:
            await host.connect()
            descriptors = await host.list_tools()
        except Exception as e:
            return {"success": False, "tool_count": 0, "tools": [], "error": str(e)}
        finally:
            await self._teardown(host)

        return {
            "success": True,
            "tool_count": len(descriptors),
            "tools": [d.name for d in descriptors],
            "error": None,
        }

    # === Tools ===

    async def execute_tool(
        self,
        name: str,
        arguments: dict[str, _typing.Any],
    ) -> tools_base.ToolResult:
        """
        Run a tool on the host that provides it.

        Raises:
            ToolNotFoundError: If no connected host provides the tool
            HostError: If the host itself fails during the call
        """
        descriptor = self._routes.get(name)
        if descriptor is None:
            raise base.ToolNotFoundError(name)
        connection = self._connections.get(descriptor.host_id)
        if connection is None or connection.host is None:
            raise base.ToolNotFoundError(name)

        _logger.debug("Executing %s on host '%s'", name, descriptor.host_id)
        return await connection.host.call_tool(name, arguments)

    def list_tools(self) -> list[base.ToolDescriptor]:
        return list(self._routes.values())

    def get_tool(self, name: str) -> base.ToolDescriptor | None:
        return self._routes.get(name)

    def api_tools(self) -> list[api_types.Tool]:
        """Schemas of every routed tool, in the form sent to the model."""
        return [d.to_api_tool() for d in self._routes.values()]

    # === Introspection ===

    def host_info(self, host_id: str) -> HostConnection:
        """
        Raises:
            HostNotFoundError: If the host is not tracked
        """
        connection = self._connections.get(host_id)
        if connection is None:
            raise base.HostNotFoundError(host_id)
        return connection

    def all_host_info(self) -> list[HostConnection]:
        return list(self._connections.values())

    @property
    def disabled_hosts(self) -> set[str]:
        return set(self._disabled)

    def __contains__(self, host_id: str) -> bool:
        return host_id in self._connections

    # === Internals ===

    async def _try_connect(self, host_id: str, config: host_config.HostConfig) -> ConnectOutcome:
        try:
            connection = await self.connect(host_id, config)
        except base.HostConnectError as e:
            _logger.warning("%s", e)
            return ConnectOutcome(host_id, success=False, error=str(e))
        return ConnectOutcome(host_id, success=True, tool_count=len(connection.tool_names))

    def _register(self, descriptor: base.ToolDescriptor) -> None:
        previous = self._routes.get(descriptor.name)
        if previous is not None and previous.host_id != descriptor.host_id:
            _logger.warning(
                "Tool '%s' from host '%s' replaces the one from host '%s'",
                descriptor.name, descriptor.host_id, previous.host_id,
            )
            self._observer.on_tool_collision(
                descriptor.name, previous.host_id, descriptor.host_id
            )
        self._routes[descriptor.name] = descriptor

    def _unregister_host(self, host_id: str) -> int:
        """Remove the routes a host still owns; return how many it provided."""
        connection = self._connections.get(host_id)
        for name in [n for n, d in self._routes.items() if d.host_id == host_id]:
            del self._routes[name]
        return len(connection.tool_names) if connection is not None else 0

    def _record_failure(
        self,
        host_id: str,
        config: host_config.HostConfig,
        message: str,
    ) -> None:
        connection = HostConnection(
            host_id=host_id,
            transport=config.transport,
            status="failed",
            config=config,
        )
        self._connections[host_id] = connection
        self._mark_failed(connection, message)

    def _mark_failed(self, connection: HostConnection, message: str) -> None:
        connection.status = "failed"
        connection.last_error = message
        connection.failed_at = _now()
        connection.tool_names = []
        connection.host = None
        self._observer.on_host_failed(connection.host_id, message)

    def _on_host_exit(self, host_id: str, reason: str) -> None:
        connection = self._connections.get(host_id)
        if connection is None or connection.status != "connected":
            return
        self._unregister_host(host_id)
        self._mark_failed(connection, reason)

    async def _teardown(self, host: base.ToolHost) -> str | None:
        try:
            await host.disconnect()
        except Exception as e:
            _logger.warning("Error disconnecting host '%s': %s", host.host_id, e)
            return str(e)
        return None
