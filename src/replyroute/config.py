"""Configuration management for replyroute."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel, to_snake
from pydantic_settings import BaseSettings, SettingsConfigDict

from replyroute.errors import InvalidConfigError

TRUTHY_ENV_VALUES = frozenset({"1", "true", "yes", "on"})
FALSY_ENV_VALUES = frozenset({"0", "false", "no", "off"})


def parse_optional_bool(raw: object) -> bool | None:
    """Parse a boolean-ish operational flag.

    Accepted truthy values: 1, true, yes, on.
    Accepted falsy values: 0, false, no, off.
    Anything else is treated as unset.
    """
    if isinstance(raw, bool):
        return raw
    if not isinstance(raw, str):
        return None
    value = raw.strip().lower()
    if value in TRUTHY_ENV_VALUES:
        return True
    if value in FALSY_ENV_VALUES:
        return False
    return None


class _ConfigModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ToolWarningsConfig(_ConfigModel):
    """`messages.toolWarnings` section."""

    enabled: bool | None = None
    target: str | None = None
    to: str | None = None
    exec_only: bool | None = None
    fallback_to_user_chat: bool | None = None
    dedupe_window_ms: int | None = None


class MessagesConfig(_ConfigModel):
    """`messages` section."""

    suppress_tool_errors: bool = False
    tool_warnings: ToolWarningsConfig = Field(default_factory=ToolWarningsConfig)


class HeartbeatConfig(_ConfigModel):
    """`agents.defaults.heartbeat` section, used as the fallback warning route."""

    target: str | None = None
    to: str | None = None


class AgentDefaultsConfig(_ConfigModel):
    heartbeat: HeartbeatConfig = Field(default_factory=HeartbeatConfig)


class AgentsConfig(_ConfigModel):
    defaults: AgentDefaultsConfig = Field(default_factory=AgentDefaultsConfig)


class AppConfig(_ConfigModel):
    """Structured configuration consumed by payload building and warning routing."""

    messages: MessagesConfig = Field(default_factory=MessagesConfig)
    agents: AgentsConfig = Field(default_factory=AgentsConfig)


class Settings(BaseSettings):
    """Process environment settings."""

    model_config = SettingsConfigDict(
        env_prefix="REPLYROUTE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    tool_warnings_enabled: bool | None = Field(
        default=None, description="Override for messages.toolWarnings.enabled"
    )
    log_level: str = Field(default="INFO", description="Log level")

    @field_validator("tool_warnings_enabled", mode="before")
    @classmethod
    def _tri_state(cls, value: Any) -> bool | None:
        return parse_optional_bool(value)


def get_settings() -> Settings:
    """Read settings from the current process environment."""
    return Settings()


def load_config(data: Mapping[str, Any] | AppConfig | None) -> AppConfig:
    """Validate a configuration mapping.

    Raises:
        InvalidConfigError: if the mapping does not match the expected shape.
    """
    if data is None:
        return AppConfig()
    if isinstance(data, AppConfig):
        return data
    try:
        return AppConfig.model_validate(dict(data))
    except ValidationError as exc:
        raise InvalidConfigError(str(exc)) from exc


def _plain(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _plain(item) for key, item in value.items()}
    return value


def _drop_field(data: dict[str, Any], loc: tuple[int | str, ...]) -> bool:
    """Delete the deepest value reachable along a validation error location."""
    node: Any = data
    parent: dict[str, Any] | None = None
    found: str | None = None
    for part in loc:
        if not isinstance(node, dict) or not isinstance(part, str):
            break
        key = next((name for name in (part, to_camel(part), to_snake(part)) if name in node), None)
        if key is None:
            break
        parent, found, node = node, key, node[key]
    if parent is None or found is None:
        return False
    del parent[found]
    return True


def load_config_lenient(data: Mapping[str, Any] | AppConfig | None) -> AppConfig:
    """Validate a configuration mapping, resetting only the fields that fail.

    Every other field keeps its configured value.

    Raises:
        InvalidConfigError: if no failing field can be isolated.
    """
    if data is None:
        return AppConfig()
    if isinstance(data, AppConfig):
        return data
    remaining = _plain(data)
    while True:
        try:
            return AppConfig.model_validate(remaining)
        except ValidationError as exc:
            dropped = [error["loc"] for error in exc.errors() if _drop_field(remaining, error["loc"])]
            if not dropped:
                raise InvalidConfigError(str(exc)) from exc
            for loc in dropped:
                logger.warning("config.field.invalid path={}", ".".join(str(part) for part in loc))
