"""
Tool hosts and the manager that routes tool calls to them.

A host is in-process (the built-in tools), a child process speaking
JSON-RPC over stdio, or a remote JSON-RPC server over HTTP.
"""

from ronin.hosts.base import (
    HostConnectError,
    HostError,
    HostNotFoundError,
    RpcError,
    ToolDescriptor,
    ToolHost,
    ToolNotFoundError,
)
from ronin.hosts.builtin import BuiltinToolHost
from ronin.hosts.config import (
    ChildProcessHostConfig,
    HostConfig,
    HostConfigError,
    InProcessHostConfig,
    NetworkHostConfig,
    load_hosts_file,
    load_hosts_yaml,
)
from ronin.hosts.http import NetworkRequestHost, NetworkStreamHost
from ronin.hosts.manager import (
    ConnectOutcome,
    DisconnectResult,
    HostConnection,
    HostObserver,
    ReloadResult,
    ToolHostManager,
    create_host,
)
from ronin.hosts.stdio import ChildProcessHost

__all__ = [
    "BuiltinToolHost",
    "ChildProcessHost",
    "ChildProcessHostConfig",
    "ConnectOutcome",
    "DisconnectResult",
    "HostConfig",
    "HostConfigError",
    "HostConnectError",
    "HostConnection",
    "HostError",
    "HostNotFoundError",
    "HostObserver",
    "InProcessHostConfig",
    "NetworkHostConfig",
    "NetworkRequestHost",
    "NetworkStreamHost",
    "ReloadResult",
    "RpcError",
    "ToolDescriptor",
    "ToolHost",
    "ToolHostManager",
    "ToolNotFoundError",
    "create_host",
    "load_hosts_file",
    "load_hosts_yaml",
]
