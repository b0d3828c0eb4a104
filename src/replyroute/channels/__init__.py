"""Channel adapters and reply delivery exports."""

from replyroute.channels.base import BaseChannel
from replyroute.channels.events import OutboundMessage, RouteReplyResult
from replyroute.channels.router import ChannelReplyRouter, ReplyRouter

__all__ = [
    "BaseChannel",
    "ChannelReplyRouter",
    "OutboundMessage",
    "ReplyRouter",
    "RouteReplyResult",
]
