"""
Tool-host configuration.

Hosts are declared in YAML under a ``hosts:`` mapping of host id to
settings::

    hosts:
      builtin:
        transport: in-process
        tools: [file_read, file_list]
      git:
        command: uvx
        args: [mcp-server-git]
        env:
          GIT_TOKEN: ${GIT_TOKEN}
      search:
        url: https://tools.example.com/mcp
        headers:
          Authorization: Bearer ${SEARCH_TOKEN}
      old:
        command: ./legacy-server
        enabled: false

When ``transport`` is omitted it is inferred: ``command`` means
child-process, ``url`` means network-stream, neither means in-process.
"""

from __future__ import annotations

import os as _os
import pathlib as _pathlib
import re as _re
import typing as _typing

import pydantic as _pydantic
import yaml as _yaml

import ronin.constants as _constants

_ENV_PLACEHOLDER = _re.compile(r"\$\{(\w+)\}")

# Spellings accepted for compatibility with other MCP clients
_TRANSPORT_ALIASES: dict[str, str] = {
    "builtin": "in-process",
    "stdio": "child-process",
    "http": "network-request",
    "sse": "network-stream",
    "streamable-http": "network-stream",
}


class HostConfigError(ValueError):
    """The host configuration file is unreadable or invalid."""

    pass


def expand_env(value: str, environ: _typing.Mapping[str, str] | None = None) -> str:
    """
    Replace ``${VAR}`` placeholders with environment values.

    Unknown or empty variables leave the placeholder as written.
    """
    env = _os.environ if environ is None else environ
    return _ENV_PLACEHOLDER.sub(lambda m: env.get(m.group(1)) or m.group(0), value)


def expand_env_mapping(
    values: _typing.Mapping[str, str],
    environ: _typing.Mapping[str, str] | None = None,
) -> dict[str, str]:
    return {key: expand_env(str(value), environ) for key, value in values.items()}


# =============================================================================
# Models
# =============================================================================


class _HostConfigBase(_pydantic.BaseModel):
    model_config = _pydantic.ConfigDict(extra="allow", frozen=True)

    enabled: bool = True
    """False keeps the host configured but never connected."""


class InProcessHostConfig(_HostConfigBase):
    """The built-in host."""

    transport: _typing.Literal["in-process"] = "in-process"

    tools: tuple[str, ...] | None = None
    """Subset of built-in tools to serve (default: all)."""


class ChildProcessHostConfig(_HostConfigBase):
    """A local command speaking JSON-RPC over stdio."""

    transport: _typing.Literal["child-process"] = "child-process"

    command: str
    args: tuple[str, ...] = ()
    cwd: str | None = None
    env: dict[str, str] = _pydantic.Field(default_factory=dict)
    timeout: float = _pydantic.Field(default=_constants.DEFAULT_HOST_TIMEOUT, gt=0)


class NetworkHostConfig(_HostConfigBase):
    """A remote server reached with JSON-RPC over HTTP POST."""

    transport: _typing.Literal["network-stream", "network-request"] = "network-stream"

    url: str
    headers: dict[str, str] = _pydantic.Field(default_factory=dict)
    timeout: float = _pydantic.Field(default=_constants.DEFAULT_HOST_TIMEOUT, gt=0)


HostConfig = _typing.Annotated[
    InProcessHostConfig | ChildProcessHostConfig | NetworkHostConfig,
    _pydantic.Field(discriminator="transport"),
]


def _normalize_entry(entry: _typing.Any) -> _typing.Any:
    """Fill in or canonicalize ``transport`` before validation."""
    if entry is None:
        entry = {}
    if not isinstance(entry, dict):
        return entry

    entry = dict(entry)
    transport = entry.get("transport")
    if transport is None:
        if entry.get("command"):
            transport = "child-process"
        elif entry.get("url"):
            transport = "network-stream"
        else:
            transport = "in-process"
    entry["transport"] = _TRANSPORT_ALIASES.get(str(transport), transport)
    return entry


class HostsFile(_pydantic.BaseModel):
    """Top-level document of a hosts YAML file."""

    hosts: dict[str, HostConfig] = _pydantic.Field(default_factory=dict)

    @_pydantic.field_validator("hosts", mode="before")
    @classmethod
    def _infer_transports(cls, value: _typing.Any) -> _typing.Any:
        if value is None:
            return {}
        if not isinstance(value, dict):
            return value
        return {str(k): _normalize_entry(v) for k, v in value.items()}


# =============================================================================
# Loading
# =============================================================================


def parse_host_config(entry: dict[str, _typing.Any], host_id: str = "host") -> HostConfig:
    """
    Validate a single host entry (transport inferred if omitted).

    Raises:
        HostConfigError: If the entry is invalid
    """
    try:
        document = HostsFile.model_validate({"hosts": {host_id: entry}})
    except _pydantic.ValidationError as e:
        raise HostConfigError(f"Invalid configuration for host '{host_id}': {e}") from e
    return document.hosts[host_id]


def load_hosts_yaml(text: str) -> dict[str, HostConfig]:
    """
    Parse host configuration from YAML text.

    Raises:
        HostConfigError: On YAML syntax errors or invalid entries
    """
    try:
        raw = _yaml.safe_load(text)
    except _yaml.YAMLError as e:
        raise HostConfigError(f"Invalid YAML: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise HostConfigError("Host configuration must be a mapping with a 'hosts' key")

    try:
        document = HostsFile.model_validate({"hosts": raw.get("hosts")})
    except _pydantic.ValidationError as e:
        raise HostConfigError(f"Invalid host configuration: {e}") from e
    return dict(document.hosts)


def default_hosts() -> dict[str, HostConfig]:
    """Configuration used when no hosts file exists: just the built-in host."""
    return {_constants.BUILTIN_HOST_ID: InProcessHostConfig()}


def load_hosts_file(path: _pathlib.Path | str) -> dict[str, HostConfig]:
    """
    Load host configuration from a YAML file.

    A missing file yields the default configuration.

    Raises:
        HostConfigError: If the file cannot be read or is invalid
    """
    path = _pathlib.Path(path)
    if not path.exists():
        return default_hosts()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise HostConfigError(f"Cannot read {path}: {e}") from e
    return load_hosts_yaml(text)


def file_loader(path: _pathlib.Path | str) -> _typing.Callable[[], dict[str, HostConfig]]:
    """Loader for ToolHostManager that re-reads ``path`` on every reload."""
    return lambda: load_hosts_file(path)
