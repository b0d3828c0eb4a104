from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from replyroute.channels.events import RouteReplyResult
from replyroute.config import load_config
from replyroute.routing import WarningRouter, route_warnings
from replyroute.routing.cache import WarningFingerprintCache
from replyroute.routing.policy import (
    DEFAULT_WARNING_DEDUPE_WINDOW_MS,
    MIN_WARNING_DEDUPE_WINDOW_MS,
    WarningRoute,
    WarningRoutingPolicy,
    resolve_warning_policy,
)
from replyroute.routing.warnings import should_route_to_user_chat, should_route_to_warning_channel
from replyroute.types import ReplyPayload, WarningEvent


@dataclass
class FakeReplyRouter:
    results: list[RouteReplyResult | Exception] = field(default_factory=list)
    calls: list[dict[str, Any]] = field(default_factory=list)

    def is_routable_channel(self, channel: str | None) -> bool:
        return bool(channel) and channel != "webchat"

    async def route_reply(
        self,
        payload: ReplyPayload,
        *,
        channel: str,
        to: str,
        session_key: str | None = None,
        mirror: bool = True,
    ) -> RouteReplyResult:
        self.calls.append(
            {"payload": payload, "channel": channel, "to": to, "session_key": session_key, "mirror": mirror}
        )
        if not self.results:
            return RouteReplyResult(ok=True)
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class FakeClock:
    def __init__(self, now: int = 1_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def _warning(
    tool_name: str = "exec",
    text: str = "\u26a0\ufe0f \U0001f6e0\ufe0f Exec failed: Command exited with code 1",
    fingerprint: str = "fp-1",
) -> WarningEvent:
    return WarningEvent(
        text=text,
        tool_name=tool_name,
        tool_summary=text,
        fingerprint=fingerprint,
        ts=0,
        is_mutating=tool_name in {"exec", "write"},
    )


def _config(**tool_warnings: Any) -> dict[str, Any]:
    return {"messages": {"toolWarnings": {"enabled": True, **tool_warnings}}}


def _router(reply_router: FakeReplyRouter, *, clock: FakeClock | None = None) -> WarningRouter:
    return WarningRouter(reply_router, cache=WarningFingerprintCache(clock=clock or FakeClock()))


@pytest.mark.asyncio
async def test_routes_exec_warning_without_user_fallback() -> None:
    reply_router = FakeReplyRouter()
    router = _router(reply_router)

    payloads = await router.route(
        [_warning()],
        _config(target="telegram", to="ops-chat", fallbackToUserChat=False),
        session_key="session:1",
    )

    assert payloads == []
    assert len(reply_router.calls) == 1
    call = reply_router.calls[0]
    assert call["channel"] == "telegram"
    assert call["to"] == "ops-chat"
    assert call["mirror"] is False
    assert call["session_key"] == "session:1"
    assert call["payload"].is_error is True


@pytest.mark.asyncio
async def test_successful_route_skips_user_chat_even_with_fallback() -> None:
    reply_router = FakeReplyRouter()

    payloads = await _router(reply_router).route([_warning()], _config(target="telegram", to="ops-chat"))

    assert payloads == []
    assert len(reply_router.calls) == 1


@pytest.mark.asyncio
async def test_falls_back_to_user_chat_when_no_target_is_configured() -> None:
    reply_router = FakeReplyRouter()
    warning = _warning()

    payloads = await _router(reply_router).route([warning], _config())

    assert payloads == [ReplyPayload(text=warning.text, is_error=True)]
    assert reply_router.calls == []


@pytest.mark.asyncio
async def test_unroutable_target_counts_as_missing_route() -> None:
    reply_router = FakeReplyRouter()

    payloads = await _router(reply_router).route([_warning()], _config(target="webchat", to="ops"))

    assert len(payloads) == 1
    assert reply_router.calls == []


@pytest.mark.asyncio
async def test_missing_target_ignores_fallback_flag() -> None:
    reply_router = FakeReplyRouter()
    warning = _warning()

    payloads = await _router(reply_router).route([warning], _config(fallbackToUserChat=False))

    assert payloads == [ReplyPayload(text=warning.text, is_error=True)]
    assert reply_router.calls == []


@pytest.mark.asyncio
async def test_uses_heartbeat_target_when_tool_warning_target_is_unset() -> None:
    reply_router = FakeReplyRouter()
    config = _config()
    config["agents"] = {"defaults": {"heartbeat": {"target": " Slack ", "to": "C123"}}}

    payloads = await _router(reply_router).route([_warning()], config)

    assert payloads == []
    assert reply_router.calls[0]["channel"] == "slack"
    assert reply_router.calls[0]["to"] == "C123"


@pytest.mark.asyncio
async def test_non_exec_warning_goes_to_user_chat_when_exec_only() -> None:
    reply_router = FakeReplyRouter()
    warning = _warning(tool_name="browser", text="\u26a0\ufe0f \U0001f310 Browser failed: tab not found")

    payloads = await _router(reply_router).route([warning], _config(target="telegram", to="ops-chat"))

    assert [payload.text for payload in payloads] == [warning.text]
    assert reply_router.calls == []


@pytest.mark.asyncio
async def test_routes_every_tool_when_exec_only_is_disabled() -> None:
    reply_router = FakeReplyRouter()
    warning = _warning(tool_name="write", text="\u26a0\ufe0f Write failed: disk full")

    payloads = await _router(reply_router).route(
        [warning], _config(target="telegram", to="ops-chat", execOnly=False)
    )

    assert payloads == []
    assert len(reply_router.calls) == 1


@pytest.mark.asyncio
async def test_rate_limits_repeated_fingerprints_within_window() -> None:
    reply_router = FakeReplyRouter()
    clock = FakeClock()
    router = _router(reply_router, clock=clock)
    config = _config(target="telegram", to="ops-chat", dedupeWindowMs=60_000)

    await router.route([_warning()], config)
    clock.now += 30_000
    await router.route([_warning()], config)

    assert len(reply_router.calls) == 1

    clock.now += 30_000
    await router.route([_warning()], config)

    assert len(reply_router.calls) == 2


@pytest.mark.asyncio
async def test_rate_limited_warning_does_not_fall_back_to_user_chat() -> None:
    reply_router = FakeReplyRouter()
    router = _router(reply_router)

    first = await router.route([_warning()], _config())
    second = await router.route([_warning()], _config())

    assert len(first) == 1
    assert second == []


@pytest.mark.asyncio
async def test_dedupes_identical_warnings_within_one_call() -> None:
    reply_router = FakeReplyRouter()
    warning = _warning()

    payloads = await _router(reply_router).route([warning, warning], _config())

    assert len(payloads) == 1


@pytest.mark.asyncio
async def test_skips_blank_warning_text() -> None:
    reply_router = FakeReplyRouter()

    payloads = await _router(reply_router).route([_warning(text="   ")], _config())

    assert payloads == []


@pytest.mark.asyncio
async def test_failed_delivery_falls_back_to_user_chat() -> None:
    reply_router = FakeReplyRouter(results=[RouteReplyResult(ok=False, error="chat not found")])
    warning = _warning()

    payloads = await _router(reply_router).route([warning], _config(target="telegram", to="ops-chat"))

    assert payloads == [ReplyPayload(text=warning.text, is_error=True)]
    assert len(reply_router.calls) == 1


@pytest.mark.asyncio
async def test_delivery_exception_falls_back_to_user_chat() -> None:
    reply_router = FakeReplyRouter(results=[RuntimeError("socket closed")])

    payloads = await _router(reply_router).route([_warning()], _config(target="telegram", to="ops-chat"))

    assert len(payloads) == 1


@pytest.mark.asyncio
async def test_failed_delivery_without_fallback_drops_warning() -> None:
    reply_router = FakeReplyRouter(results=[RuntimeError("socket closed")])

    payloads = await _router(reply_router).route(
        [_warning()], _config(target="telegram", to="ops-chat", fallbackToUserChat=False)
    )

    assert payloads == []


@pytest.mark.asyncio
async def test_legacy_path_when_routing_is_disabled() -> None:
    reply_router = FakeReplyRouter()
    warning = _warning()
    config = {"messages": {"toolWarnings": {"enabled": False, "target": "telegram", "to": "ops-chat"}}}

    payloads = await _router(reply_router).route([warning, warning], config)

    assert payloads == [ReplyPayload(text=warning.text, is_error=True)]
    assert reply_router.calls == []


@pytest.mark.asyncio
async def test_legacy_path_is_not_rate_limited() -> None:
    reply_router = FakeReplyRouter()
    router = _router(reply_router)

    first = await router.route([_warning()], None)
    second = await router.route([_warning()], None)

    assert len(first) == 1
    assert len(second) == 1


@pytest.mark.asyncio
async def test_suppress_tool_errors_blocks_user_chat_on_both_paths() -> None:
    reply_router = FakeReplyRouter()
    suppress = {"messages": {"suppressToolErrors": True, "toolWarnings": {"enabled": True}}}

    routed = await _router(reply_router).route([_warning()], suppress)
    legacy = await _router(reply_router).route([_warning()], {"messages": {"suppressToolErrors": True}})

    assert routed == []
    assert legacy == []


@pytest.mark.asyncio
async def test_env_enabled_overrides_disabled_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPLYROUTE_TOOL_WARNINGS_ENABLED", "1")
    reply_router = FakeReplyRouter()
    config = {"messages": {"toolWarnings": {"enabled": False, "target": "telegram", "to": "ops-chat"}}}

    payloads = await _router(reply_router).route([_warning()], config)

    assert payloads == []
    assert len(reply_router.calls) == 1


@pytest.mark.asyncio
async def test_env_disabled_overrides_enabled_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPLYROUTE_TOOL_WARNINGS_ENABLED", "off")
    reply_router = FakeReplyRouter()

    payloads = await _router(reply_router).route([_warning()], _config(target="telegram", to="ops-chat"))

    assert len(payloads) == 1
    assert reply_router.calls == []


@pytest.mark.asyncio
async def test_unrecognized_env_value_is_treated_as_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPLYROUTE_TOOL_WARNINGS_ENABLED", "maybe")
    reply_router = FakeReplyRouter()

    payloads = await _router(reply_router).route([_warning()], _config(target="telegram", to="ops-chat"))

    assert payloads == []
    assert len(reply_router.calls) == 1


@pytest.mark.asyncio
async def test_invalid_field_falls_back_to_its_default() -> None:
    reply_router = FakeReplyRouter()
    warning = _warning()

    payloads = await _router(reply_router).route([warning], {"messages": {"toolWarnings": {"enabled": "sometimes"}}})

    assert payloads == [ReplyPayload(text=warning.text, is_error=True)]


@pytest.mark.asyncio
async def test_invalid_field_keeps_suppression_from_the_rest_of_the_config() -> None:
    reply_router = FakeReplyRouter()
    config = {"messages": {"suppressToolErrors": True, "toolWarnings": {"dedupeWindowMs": "soon"}}}

    payloads = await _router(reply_router).route([_warning()], config)

    assert payloads == []
    assert reply_router.calls == []


@pytest.mark.asyncio
async def test_invalid_field_keeps_configured_route() -> None:
    reply_router = FakeReplyRouter()
    config = _config(target="telegram", to="ops-chat", execOnly="perhaps", fallbackToUserChat=False)

    payloads = await _router(reply_router).route([_warning()], config)

    assert payloads == []
    assert len(reply_router.calls) == 1
    assert reply_router.calls[0]["channel"] == "telegram"


@pytest.mark.asyncio
async def test_route_warnings_helper_uses_given_cache() -> None:
    reply_router = FakeReplyRouter()
    cache = WarningFingerprintCache(clock=FakeClock())

    await route_warnings([_warning()], _config(target="telegram", to="ops-chat"), reply_router, cache=cache)

    assert "fp-1" in cache
    assert len(reply_router.calls) == 1


def test_policy_defaults_and_window_floor() -> None:
    policy = resolve_warning_policy(load_config(None), is_routable=lambda _: True, env_enabled=None)

    assert policy.enabled is False
    assert policy.route is None
    assert policy.exec_only is True
    assert policy.fallback_to_user_chat is True
    assert policy.dedupe_window_ms == DEFAULT_WARNING_DEDUPE_WINDOW_MS

    tight = resolve_warning_policy(
        load_config({"messages": {"toolWarnings": {"dedupeWindowMs": 5}}}),
        is_routable=lambda _: True,
    )
    assert tight.dedupe_window_ms == MIN_WARNING_DEDUPE_WINDOW_MS


def test_route_needs_both_channel_and_destination() -> None:
    config = load_config({"messages": {"toolWarnings": {"target": "telegram", "to": "  "}}})

    assert resolve_warning_policy(config, is_routable=lambda _: True).route is None


def test_user_chat_decision_table() -> None:
    route = WarningRoute(channel="telegram", to="ops")
    exec_warning = _warning()
    policy = WarningRoutingPolicy(enabled=True, route=route)
    no_fallback = WarningRoutingPolicy(enabled=True, route=route, fallback_to_user_chat=False)

    assert should_route_to_warning_channel(exec_warning, policy)
    assert not should_route_to_warning_channel(_warning(tool_name="browser"), policy)
    assert not should_route_to_user_chat(exec_warning, policy, route_attempted=True, route_succeeded=True)
    assert should_route_to_user_chat(exec_warning, policy, route_attempted=True, route_succeeded=False)
    assert not should_route_to_user_chat(exec_warning, no_fallback, route_attempted=True, route_succeeded=False)
    assert should_route_to_user_chat(exec_warning, policy, route_attempted=False, route_succeeded=False)
    assert not should_route_to_user_chat(exec_warning, no_fallback, route_attempted=False, route_succeeded=False)
    missing_route = WarningRoutingPolicy(enabled=True, route=None, fallback_to_user_chat=False)
    assert should_route_to_user_chat(exec_warning, missing_route, route_attempted=False, route_succeeded=False)
