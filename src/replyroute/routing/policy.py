"""Warning routing policy resolved from configuration and environment."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from replyroute.config import AppConfig, get_settings

DEFAULT_WARNING_DEDUPE_WINDOW_MS = 10 * 60 * 1000
MIN_WARNING_DEDUPE_WINDOW_MS = 1_000


@dataclass(frozen=True)
class WarningRoute:
    channel: str
    to: str


@dataclass(frozen=True)
class WarningRoutingPolicy:
    enabled: bool
    route: WarningRoute | None
    exec_only: bool = True
    fallback_to_user_chat: bool = True
    dedupe_window_ms: int = DEFAULT_WARNING_DEDUPE_WINDOW_MS
    suppress_tool_errors: bool = False


def resolve_warning_route(config: AppConfig, is_routable: Callable[[str], bool]) -> WarningRoute | None:
    """Tool-warning target/to, each falling back to the heartbeat target/to."""
    tool_warnings = config.messages.tool_warnings
    heartbeat = config.agents.defaults.heartbeat
    target = tool_warnings.target if tool_warnings.target is not None else heartbeat.target
    to = tool_warnings.to if tool_warnings.to is not None else heartbeat.to
    if not isinstance(target, str) or not isinstance(to, str):
        return None
    channel = target.strip().lower()
    to = to.strip()
    if not channel or not to or not is_routable(channel):
        return None
    return WarningRoute(channel=channel, to=to)


def resolve_warning_policy(
    config: AppConfig,
    *,
    is_routable: Callable[[str], bool],
    env_enabled: bool | None = None,
) -> WarningRoutingPolicy:
    """Resolve the routing policy for one call.

    Precedence for `enabled`: REPLYROUTE_TOOL_WARNINGS_ENABLED, then
    messages.tool_warnings.enabled, then False.
    """
    if env_enabled is None:
        env_enabled = get_settings().tool_warnings_enabled
    tool_warnings = config.messages.tool_warnings

    enabled = env_enabled
    if enabled is None:
        enabled = bool(tool_warnings.enabled)
    window = tool_warnings.dedupe_window_ms
    if window is None:
        window = DEFAULT_WARNING_DEDUPE_WINDOW_MS

    return WarningRoutingPolicy(
        enabled=enabled,
        route=resolve_warning_route(config, is_routable),
        exec_only=tool_warnings.exec_only if tool_warnings.exec_only is not None else True,
        fallback_to_user_chat=(
            tool_warnings.fallback_to_user_chat if tool_warnings.fallback_to_user_chat is not None else True
        ),
        dedupe_window_ms=max(MIN_WARNING_DEDUPE_WINDOW_MS, window),
        suppress_tool_errors=config.messages.suppress_tool_errors,
    )
