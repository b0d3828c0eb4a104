"""Data shapes shared by payload building and warning routing."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from replyroute.config import AppConfig

StopReason = Literal["stop", "error", "toolUse", "end_turn", "length", "aborted"]
VerboseLevel = Literal["off", "on", "full"]
ReasoningLevel = Literal["off", "on", "stream"]
ToolResultFormat = Literal["markdown", "plain"]


@dataclass(frozen=True)
class TextContent:
    text: str
    type: Literal["text"] = "text"


@dataclass(frozen=True)
class ThinkingContent:
    thinking: str
    type: Literal["thinking"] = "thinking"


@dataclass(frozen=True)
class ToolCallContent:
    name: str
    id: str = ""
    arguments: dict[str, Any] = field(default_factory=dict)
    type: Literal["toolCall"] = "toolCall"


ContentBlock = TextContent | ThinkingContent | ToolCallContent


def content_block_from_mapping(data: Mapping[str, Any]) -> ContentBlock | None:
    """Build a content block from a provider mapping; unknown kinds yield None."""
    kind = data.get("type")
    if kind == "text":
        return TextContent(text=str(data.get("text") or ""))
    if kind == "thinking":
        return ThinkingContent(thinking=str(data.get("thinking") or ""))
    if kind == "toolCall":
        arguments = data.get("arguments")
        return ToolCallContent(
            name=str(data.get("name") or ""),
            id=str(data.get("id") or ""),
            arguments=dict(arguments) if isinstance(arguments, Mapping) else {},
        )
    return None


@dataclass(frozen=True)
class AssistantMessage:
    """Final assistant message of one turn, as reported by the agent runtime."""

    stop_reason: StopReason | str | None = None
    error_message: str | None = None
    content: list[ContentBlock] = field(default_factory=list)
    provider: str | None = None
    model: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> AssistantMessage:
        """Build from a runtime message mapping with camelCase or snake_case keys."""
        raw_content = data.get("content")
        content: list[ContentBlock] = []
        if isinstance(raw_content, str):
            content.append(TextContent(text=raw_content))
        elif isinstance(raw_content, list):
            for item in raw_content:
                block = content_block_from_mapping(item) if isinstance(item, Mapping) else None
                if block is not None:
                    content.append(block)
        return cls(
            stop_reason=_first_present(data, "stopReason", "stop_reason"),
            error_message=_first_present(data, "errorMessage", "error_message"),
            content=content,
            provider=_first_present(data, "provider"),
            model=_first_present(data, "model"),
        )


def _first_present(data: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str):
            return value
    return None


@dataclass(frozen=True)
class ToolMetaEntry:
    tool_name: str
    meta: str | None = None


@dataclass(frozen=True)
class LastToolError:
    """Most recent tool failure of a turn."""

    tool_name: str
    meta: str | None = None
    error: str | None = None
    mutating_action: bool | None = None
    action_fingerprint: str | None = None


@dataclass(frozen=True)
class AssistantTurnOutcome:
    """Raw outcome of one agent turn."""

    assistant_texts: list[str] = field(default_factory=list)
    tool_metas: list[ToolMetaEntry] = field(default_factory=list)
    last_assistant: AssistantMessage | None = None
    last_tool_error: LastToolError | None = None


@dataclass(frozen=True)
class BuildOptions:
    """Caller-supplied switches for payload building."""

    session_key: str = ""
    provider: str | None = None
    model: str | None = None
    verbose_level: VerboseLevel = "off"
    reasoning_level: ReasoningLevel = "off"
    tool_result_format: ToolResultFormat = "plain"
    inline_tool_results_allowed: bool = False
    config: AppConfig | None = None


@dataclass(frozen=True)
class ReplyPayload:
    """One user-facing message ready for channel delivery."""

    text: str | None = None
    media_url: str | None = None
    media_urls: list[str] | None = None
    reply_to_id: str | None = None
    is_error: bool | None = None
    audio_as_voice: bool | None = None
    reply_to_tag: bool | None = None
    reply_to_current: bool | None = None

    @property
    def has_media(self) -> bool:
        return bool(self.media_url or self.media_urls)

    def to_dict(self) -> dict[str, Any]:
        data = {
            "text": self.text,
            "mediaUrl": self.media_url,
            "mediaUrls": list(self.media_urls) if self.media_urls else None,
            "replyToId": self.reply_to_id,
            "isError": self.is_error,
            "audioAsVoice": self.audio_as_voice,
            "replyToTag": self.reply_to_tag,
            "replyToCurrent": self.reply_to_current,
        }
        return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class WarningEvent:
    """Structured tool failure warning produced for one turn."""

    text: str
    tool_name: str
    tool_summary: str
    fingerprint: str
    ts: int
    is_mutating: bool = False
    error_text: str | None = None
    kind: Literal["tool_error"] = "tool_error"


@dataclass(frozen=True)
class TurnPayloads:
    payloads: list[ReplyPayload] = field(default_factory=list)
    warnings: list[WarningEvent] = field(default_factory=list)
