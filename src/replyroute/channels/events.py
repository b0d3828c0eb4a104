"""Channel delivery event models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from replyroute.types import ReplyPayload


@dataclass(frozen=True)
class OutboundMessage:
    """Payload to be delivered to one external channel destination."""

    channel: str
    chat_id: str
    payload: ReplyPayload
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def session_key(self) -> str | None:
        value = self.metadata.get("session_key")
        return value if isinstance(value, str) else None


@dataclass(frozen=True)
class RouteReplyResult:
    """Outcome of one delivery attempt."""

    ok: bool
    error: str | None = None
