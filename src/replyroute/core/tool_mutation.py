"""Classify tool calls that can change external state."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

MUTATING_TOOL_NAMES = frozenset(
    {
        "write",
        "edit",
        "apply_patch",
        "exec",
        "bash",
        "process",
        "message",
        "sessions_send",
        "cron",
        "gateway",
        "canvas",
        "nodes",
        "session_status",
    }
)
EXEC_LIKE_TOOLS = frozenset({"exec", "bash"})
ALWAYS_MUTATING_TOOLS = frozenset({"write", "edit", "apply_patch", "exec", "bash", "sessions_send"})
READ_ONLY_ACTIONS = frozenset(
    {
        "get",
        "list",
        "read",
        "status",
        "show",
        "fetch",
        "search",
        "query",
        "view",
        "poll",
        "log",
        "inspect",
        "check",
        "probe",
    }
)
PROCESS_MUTATING_ACTIONS = frozenset({"write", "send_keys", "submit", "paste", "kill"})
MESSAGE_MUTATING_ACTIONS = frozenset(
    {"send", "reply", "thread_reply", "threadreply", "edit", "delete", "react", "pin", "unpin"}
)
ACTION_SCOPED_TOOLS = frozenset({"cron", "gateway", "canvas"})
STABLE_TARGET_KEYS = (
    "path",
    "filePath",
    "oldPath",
    "newPath",
    "to",
    "target",
    "messageId",
    "sessionKey",
    "jobId",
    "id",
    "model",
)


def _normalize_action(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = re.sub(r"[\s-]+", "_", value.strip().lower())
    return normalized or None


def _fingerprint_value(value: Any) -> str | None:
    if isinstance(value, str):
        return value.strip().lower() or None
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    return None


def is_exec_like_tool_name(tool_name: str | None) -> bool:
    return (tool_name or "").strip().lower() in EXEC_LIKE_TOOLS


def is_likely_mutating_tool_name(tool_name: str | None) -> bool:
    normalized = (tool_name or "").strip().lower()
    if not normalized:
        return False
    return (
        normalized in MUTATING_TOOL_NAMES
        or normalized.endswith("_actions")
        or normalized.startswith("message_")
        or "send" in normalized
    )


def is_mutating_tool_call(tool_name: str | None, args: Mapping[str, Any] | None = None) -> bool:
    """Decide from the tool name and its arguments whether this call mutates state."""
    normalized = (tool_name or "").strip().lower()
    record = args if isinstance(args, Mapping) else {}
    action = _normalize_action(record.get("action"))

    if normalized in ALWAYS_MUTATING_TOOLS:
        return True
    if normalized == "process":
        return action in PROCESS_MUTATING_ACTIONS
    if normalized == "message":
        return (
            action in MESSAGE_MUTATING_ACTIONS
            or isinstance(record.get("content"), str)
            or isinstance(record.get("message"), str)
        )
    if normalized == "session_status":
        model = record.get("model")
        return isinstance(model, str) and bool(model.strip())
    if normalized in ACTION_SCOPED_TOOLS or normalized.endswith("_actions"):
        return action is None or action not in READ_ONLY_ACTIONS
    if normalized == "nodes":
        return action is None or action != "list"
    return normalized.startswith("message_") or "send" in normalized


def build_tool_action_fingerprint(
    tool_name: str | None,
    args: Mapping[str, Any] | None = None,
    meta: str | None = None,
) -> str | None:
    """Stable identity for one mutating action; None for read-only calls."""
    if not is_mutating_tool_call(tool_name, args):
        return None
    record = args if isinstance(args, Mapping) else {}
    parts = [f"tool={(tool_name or '').strip().lower()}"]
    action = _normalize_action(record.get("action"))
    if action:
        parts.append(f"action={action}")

    has_stable_target = False
    for key in STABLE_TARGET_KEYS:
        value = _fingerprint_value(record.get(key))
        if value:
            parts.append(f"{key.lower()}={value}")
            has_stable_target = True

    normalized_meta = re.sub(r"\s+", " ", meta.strip()).lower() if meta else ""
    if not has_stable_target and normalized_meta:
        parts.append(f"meta={normalized_meta}")
    return "|".join(parts)
