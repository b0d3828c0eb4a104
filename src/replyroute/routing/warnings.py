"""Route tool warning events to a dedicated channel or back to the user chat.

Warnings travel separately from normal reply payloads so tool failures can
stay out of the user conversation while still falling back there when the
dedicated route is missing or fails.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from loguru import logger

from replyroute.channels.router import ReplyRouter
from replyroute.config import AppConfig, load_config_lenient
from replyroute.core.tool_mutation import is_exec_like_tool_name
from replyroute.errors import InvalidConfigError
from replyroute.logging_utils import session_context
from replyroute.routing.cache import WarningFingerprintCache, default_fingerprint_cache
from replyroute.routing.policy import WarningRoutingPolicy, resolve_warning_policy
from replyroute.types import ReplyPayload, WarningEvent


def should_route_to_warning_channel(warning: WarningEvent, policy: WarningRoutingPolicy) -> bool:
    if policy.route is None:
        return False
    if not policy.exec_only:
        return True
    return is_exec_like_tool_name(warning.tool_name)


def should_route_to_user_chat(
    warning: WarningEvent,
    policy: WarningRoutingPolicy,
    *,
    route_attempted: bool,
    route_succeeded: bool,
) -> bool:
    if policy.suppress_tool_errors:
        return False
    if not should_route_to_warning_channel(warning, policy):
        return True
    if not route_attempted:
        return policy.fallback_to_user_chat
    if route_succeeded:
        return False
    return policy.fallback_to_user_chat


class WarningRouter:
    """Delivers one turn's warning events according to the routing policy."""

    def __init__(
        self,
        reply_router: ReplyRouter,
        *,
        cache: WarningFingerprintCache | None = None,
        env_enabled: bool | None = None,
    ) -> None:
        self._reply_router = reply_router
        self._cache = cache if cache is not None else default_fingerprint_cache
        self._env_enabled = env_enabled

    def resolve_policy(self, config: AppConfig) -> WarningRoutingPolicy:
        return resolve_warning_policy(
            config,
            is_routable=self._reply_router.is_routable_channel,
            env_enabled=self._env_enabled,
        )

    async def route(
        self,
        warnings: list[WarningEvent],
        config: AppConfig | Mapping[str, Any] | None = None,
        session_key: str | None = None,
    ) -> list[ReplyPayload]:
        """Return the warnings that must still be delivered in the user chat."""
        try:
            resolved = load_config_lenient(config)
        except InvalidConfigError as exc:
            logger.warning("warning.config.invalid error={}", exc)
            resolved = AppConfig()
        policy = self.resolve_policy(resolved)
        if not policy.enabled:
            return self._legacy_payloads(warnings, policy)

        user_payloads: list[ReplyPayload] = []
        seen: set[tuple[str, str]] = set()
        with session_context(session_key):
            for warning in warnings:
                text = (warning.text or "").strip()
                if not text:
                    continue
                key = (warning.fingerprint, text)
                if key in seen:
                    continue
                seen.add(key)

                if not self._cache.should_emit(warning.fingerprint, policy.dedupe_window_ms):
                    logger.debug(
                        "warning.rate_limited tool={} fingerprint={}", warning.tool_name, warning.fingerprint
                    )
                    continue

                attempted = False
                succeeded = False
                if should_route_to_warning_channel(warning, policy) and policy.route is not None:
                    attempted = True
                    succeeded = await self._deliver(text, policy, session_key)

                if should_route_to_user_chat(warning, policy, route_attempted=attempted, route_succeeded=succeeded):
                    user_payloads.append(ReplyPayload(text=text, is_error=True))
        return user_payloads

    def _legacy_payloads(self, warnings: list[WarningEvent], policy: WarningRoutingPolicy) -> list[ReplyPayload]:
        if policy.suppress_tool_errors:
            return []
        payloads: list[ReplyPayload] = []
        seen: set[str] = set()
        for warning in warnings:
            text = (warning.text or "").strip()
            if not text or text in seen:
                continue
            seen.add(text)
            payloads.append(ReplyPayload(text=text, is_error=True))
        return payloads

    async def _deliver(self, text: str, policy: WarningRoutingPolicy, session_key: str | None) -> bool:
        route = policy.route
        if route is None:
            return False
        try:
            result = await self._reply_router.route_reply(
                ReplyPayload(text=text, is_error=True),
                channel=route.channel,
                to=route.to,
                session_key=session_key,
                mirror=False,
            )
        except Exception as exc:
            logger.error("warning.route.failed channel={} to={} error={}", route.channel, route.to, exc)
            return False
        if not result.ok:
            logger.error(
                "warning.route.failed channel={} to={} error={}",
                route.channel,
                route.to,
                result.error or "unknown error",
            )
        return result.ok


async def route_warnings(
    warnings: list[WarningEvent],
    config: AppConfig | Mapping[str, Any] | None,
    reply_router: ReplyRouter,
    *,
    session_key: str | None = None,
    cache: WarningFingerprintCache | None = None,
) -> list[ReplyPayload]:
    """Route one turn's warnings with a throwaway `WarningRouter`."""
    router = WarningRouter(reply_router, cache=cache)
    return await router.route(warnings, config, session_key)
