"""Base channel interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from replyroute.channels.events import OutboundMessage


class BaseChannel(ABC):
    """Abstract base class for channel adapters."""

    name: str = "base"
    internal: bool = False

    @abstractmethod
    async def send(self, message: OutboundMessage) -> None:
        """Deliver one message; raise on failure."""
