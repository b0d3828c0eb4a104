"""Helpers for reading the final assistant message of a turn."""

from __future__ import annotations

from replyroute.types import AssistantMessage, TextContent, ThinkingContent, ToolCallContent


def extract_assistant_text(message: AssistantMessage | None) -> str:
    if message is None:
        return ""
    parts: list[str] = []
    for block in message.content:
        if isinstance(block, TextContent):
            if block.text.strip():
                parts.append(block.text.strip())
        elif isinstance(block, (ThinkingContent, ToolCallContent)):
            continue
    return "\n".join(parts).strip()


def extract_assistant_thinking(message: AssistantMessage | None) -> str:
    if message is None:
        return ""
    parts: list[str] = []
    for block in message.content:
        if isinstance(block, ThinkingContent):
            if block.thinking.strip():
                parts.append(block.thinking.strip())
        elif isinstance(block, (TextContent, ToolCallContent)):
            continue
    return "\n".join(parts).strip()


def has_tool_calls(message: AssistantMessage | None) -> bool:
    if message is None:
        return False
    return any(isinstance(block, ToolCallContent) for block in message.content)


def format_reasoning_message(text: str) -> str:
    """Render a reasoning trace as an italic block under a `Reasoning:` header."""
    trimmed = text.strip()
    if not trimmed:
        return ""
    lines = [f"_{line}_" if line else line for line in trimmed.split("\n")]
    return "Reasoning:\n" + "\n".join(lines)
