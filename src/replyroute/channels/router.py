"""Reply delivery to named channel destinations."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from loguru import logger

from replyroute.channels.base import BaseChannel
from replyroute.channels.events import OutboundMessage, RouteReplyResult
from replyroute.errors import DeliveryError
from replyroute.types import ReplyPayload

INTERNAL_CHANNELS = frozenset({"webchat"})


def normalize_channel_name(channel: str | None) -> str:
    return (channel or "").strip().lower()


class ReplyRouter(Protocol):
    """Delivery collaborator used by warning routing."""

    def is_routable_channel(self, channel: str | None) -> bool: ...

    async def route_reply(
        self,
        payload: ReplyPayload,
        *,
        channel: str,
        to: str,
        session_key: str | None = None,
        mirror: bool = True,
    ) -> RouteReplyResult: ...


class ChannelReplyRouter:
    """Route replies to registered in-process channel adapters."""

    def __init__(self, channels: Iterable[BaseChannel] = ()) -> None:
        self._channels: dict[str, BaseChannel] = {}
        for channel in channels:
            self.register(channel)

    def register(self, channel: BaseChannel) -> None:
        self._channels[normalize_channel_name(channel.name)] = channel

    @property
    def channels(self) -> dict[str, BaseChannel]:
        return dict(self._channels)

    def is_routable_channel(self, channel: str | None) -> bool:
        name = normalize_channel_name(channel)
        if not name or name in INTERNAL_CHANNELS:
            return False
        target = self._channels.get(name)
        return target is not None and not target.internal

    async def route_reply(
        self,
        payload: ReplyPayload,
        *,
        channel: str,
        to: str,
        session_key: str | None = None,
        mirror: bool = True,
    ) -> RouteReplyResult:
        name = normalize_channel_name(channel)
        if not self.is_routable_channel(name):
            return RouteReplyResult(ok=False, error=f"channel is not routable: {channel}")

        message = OutboundMessage(
            channel=name,
            chat_id=to,
            payload=payload,
            metadata={"session_key": session_key, "mirror": mirror},
        )
        try:
            await self._channels[name].send(message)
        except DeliveryError as exc:
            logger.warning("{}.send.failed to={} session={} error={}", name, to, message.session_key, exc)
            return RouteReplyResult(ok=False, error=str(exc) or type(exc).__name__)
        except Exception as exc:
            logger.exception("{}.send.error to={} session={}", name, to, message.session_key)
            return RouteReplyResult(ok=False, error=str(exc) or type(exc).__name__)
        return RouteReplyResult(ok=True)
