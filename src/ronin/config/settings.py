"""
Settings configuration using pydantic-settings.

Loads configuration from:
1. Constructor arguments (highest precedence)
2. Environment variables with RONIN_ prefix
3. .env file (if RONIN_ENV_FILE points at one)

Nested config uses double underscore delimiter:
  RONIN_PROVIDER__NAME=ollama
  RONIN_BEHAVIOR__MAX_TOOL_ROUNDS=10
"""

import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import ronin.config.types as types


def _get_env_file() -> str | None:
    """Determine which .env file to load.

    Only an explicit RONIN_ENV_FILE is honored. If it is set but does not
    exist, nothing is loaded rather than falling back silently.
    """
    if env_file := _os.environ.get("RONIN_ENV_FILE"):
        if _pathlib.Path(env_file).exists():
            return env_file
    return None


class Settings(_pydantic_settings.BaseSettings):
    """
    Ronin configuration settings.

    All settings can be overridden via environment variables with RONIN_ prefix.
    For nested config, use double underscore: RONIN_PROVIDER__MODEL=llama3.1
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="RONIN_",
        env_file=_get_env_file(),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",  # RONIN_BEHAVIOR__MAX_TOOL_ROUNDS
        extra="allow",
    )

    @classmethod
    def construct_without_dotenv(cls, **kwargs: _typing.Any) -> "Settings":
        """Create Settings from environment variables only, without loading .env file.

        Useful for test isolation and for reproducing issues without .env
        interference.
        """
        return cls(_env_file=None, **kwargs)  # type: ignore[call-arg]

    # =========================================================================
    # Nested config sections
    # =========================================================================

    provider: types.ProviderConfig = _pydantic.Field(default_factory=types.ProviderConfig)
    """Backend selection and request settings."""

    behavior: types.BehaviorConfig = _pydantic.Field(default_factory=types.BehaviorConfig)
    """Conversation loop behavior."""

    permissions: types.PermissionsConfig = _pydantic.Field(
        default_factory=types.PermissionsConfig
    )
    """Remembered tool approvals."""

    hosts: types.HostsConfig = _pydantic.Field(default_factory=types.HostsConfig)
    """Tool host configuration."""

    # =========================================================================
    # Flat fields
    # =========================================================================

    # API Keys (loaded from env without RONIN_ prefix for compatibility)
    anthropic_api_key: str | None = _pydantic.Field(
        default=None,
        description="Anthropic API key",
        validation_alias="ANTHROPIC_API_KEY",
    )

    openai_api_key: str | None = _pydantic.Field(
        default=None,
        description="API key for OpenAI-compatible servers",
        validation_alias="OPENAI_API_KEY",
    )

    # Permission settings (CLI only, dangerous)
    dangerously_skip_permissions: bool = _pydantic.Field(
        default=False,
        description="Skip all approval prompts (dangerous!)",
    )

    data_dir: str = _pydantic.Field(
        default="~/.ronin",
        description="Directory for the permission file and host configuration",
    )

    # =========================================================================
    # Derived paths
    # =========================================================================

    @property
    def data_path(self) -> _pathlib.Path:
        """Data directory with ~ expanded."""
        return _pathlib.Path(self.data_dir).expanduser()

    @property
    def permission_file(self) -> _pathlib.Path:
        """Resolved permission file path."""
        if self.permissions.file:
            return _pathlib.Path(self.permissions.file).expanduser()
        return self.data_path / "permissions.json"

    @property
    def hosts_file(self) -> _pathlib.Path:
        """Resolved tool-host YAML path."""
        if self.hosts.file:
            return _pathlib.Path(self.hosts.file).expanduser()
        return self.data_path / "hosts.yaml"

    def collect_unknown_fields(self) -> dict[str, _typing.Any]:
        """Unrecognized keys in all nested sections, as dotted paths."""
        result: dict[str, _typing.Any] = {}
        for name in ("provider", "behavior", "permissions", "hosts"):
            section: types.ConfigBase = getattr(self, name)
            result.update(section.collect_all_extra_fields(name))
        return result
