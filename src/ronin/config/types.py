"""Configuration type definitions for Ronin settings.

This module defines the Pydantic models used to represent configuration
structures. These are "config section" types nested within the main
Settings class:

- ProviderConfig: backend name, model, endpoint, timeout, max_tokens
- BehaviorConfig: max_tool_rounds, system_prompt, validate_turns
- PermissionsConfig: permission file location, approval TTL
- HostsConfig: tool-host configuration file location

All types use `extra="allow"` to preserve unknown fields, so a config can be
audited for typos with `collect_all_extra_fields()`.
"""

import typing as _typing

import pydantic as _pydantic

import ronin.constants as _constants

# =============================================================================
# Base class with introspection
# =============================================================================


class ConfigBase(_pydantic.BaseModel):
    """
    Base class for all config types.

    Unknown fields are preserved rather than silently dropped.
    """

    model_config = _pydantic.ConfigDict(extra="allow")

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Return fields that were provided but not in the schema."""
        return dict(self.model_extra) if self.model_extra else {}

    def collect_all_extra_fields(
        self,
        prefix: str = "",
    ) -> dict[str, _typing.Any]:
        """
        Recursively collect extra fields from this config and nested configs.

        Returns a flat dict with dotted paths as keys, e.g.:
            {"behavior.max_tool_round": 5}
        """
        result: dict[str, _typing.Any] = {}

        for key, value in self.get_extra_fields().items():
            path = f"{prefix}.{key}" if prefix else key
            result[path] = value

        for field_name in self.__class__.model_fields:
            value = getattr(self, field_name, None)
            if isinstance(value, ConfigBase):
                child_prefix = f"{prefix}.{field_name}" if prefix else field_name
                result.update(value.collect_all_extra_fields(child_prefix))

        return result


# =============================================================================
# Sections
# =============================================================================


class ProviderConfig(ConfigBase):
    """
    Backend selection and request settings.

    Env: RONIN_PROVIDER__*
    """

    name: str = _constants.DEFAULT_PROVIDER
    """Provider name: anthropic, ollama, or openai."""

    model: str | None = None
    """Model to request. None uses the provider's default."""

    base_url: str | None = None
    """Override the backend endpoint."""

    timeout: float = _pydantic.Field(default=_constants.DEFAULT_PROVIDER_TIMEOUT, gt=0)
    """HTTP timeout in seconds."""

    max_tokens: int = _pydantic.Field(default=_constants.DEFAULT_MAX_TOKENS, ge=1, le=200000)
    """Maximum tokens per model response."""


class BehaviorConfig(ConfigBase):
    """
    Conversation loop behavior.

    Env: RONIN_BEHAVIOR__*
    """

    max_tool_rounds: int = _pydantic.Field(default=_constants.DEFAULT_MAX_TOOL_ROUNDS, ge=1)
    """Upper bound on tool rounds within one user turn."""

    system_prompt: str | None = None
    """System prompt sent with every request."""

    validate_turns: bool = False
    """Re-check the tool_use/tool_result pairing before every request."""


class PermissionsConfig(ConfigBase):
    """
    Remembered tool approvals.

    Env: RONIN_PERMISSIONS__*
    """

    file: str | None = None
    """Permission file path. None means <data_dir>/permissions.json."""

    ttl_hours: float = _pydantic.Field(default=_constants.DEFAULT_PERMISSION_TTL_HOURS, gt=0)
    """Remembered approvals expire after this many hours."""


class HostsConfig(ConfigBase):
    """
    Tool host configuration.

    Env: RONIN_HOSTS__*
    """

    file: str | None = None
    """Host YAML path. None means <data_dir>/hosts.yaml."""
