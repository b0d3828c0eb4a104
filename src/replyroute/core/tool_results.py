"""Tool result inspection and per-turn tool error tracking."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from loguru import logger

from replyroute.core.tool_mutation import build_tool_action_fingerprint, is_mutating_tool_call
from replyroute.types import AssistantMessage, AssistantTurnOutcome, LastToolError, ToolMetaEntry

MAX_TOOL_ERROR_CHARS = 400
NON_ERROR_STATUSES = frozenset(
    {"0", "ok", "success", "succeeded", "completed", "done", "running", "pending", "skipped"}
)


def _normalize_error_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if len(text) > MAX_TOOL_ERROR_CHARS:
        return f"{text[:MAX_TOOL_ERROR_CHARS]}…"
    return text


def _exit_code_of(record: Mapping[str, Any]) -> int | None:
    for key in ("exitCode", "exit_code"):
        value = record.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def _error_from_record(record: Any) -> str | None:
    if not isinstance(record, Mapping):
        return None

    error = record.get("error")
    if isinstance(error, Mapping):
        error = error.get("message")
    message = _normalize_error_text(error)
    if message:
        return message

    exit_code = _exit_code_of(record)
    if exit_code is not None and exit_code != 0:
        return f"Command exited with code {exit_code}"

    status = record.get("status")
    if isinstance(status, str) and status.strip().lower() not in NON_ERROR_STATUSES:
        return _normalize_error_text(status)
    return None


def _result_text(result: Mapping[str, Any]) -> str | None:
    content = result.get("content")
    if isinstance(content, str):
        return _normalize_error_text(content)
    if not isinstance(content, Sequence):
        return None
    parts = [
        block.get("text", "")
        for block in content
        if isinstance(block, Mapping) and block.get("type") == "text" and isinstance(block.get("text"), str)
    ]
    return _normalize_error_text("\n".join(parts))


def extract_tool_error_message(result: Any) -> str | None:
    """Return the error message carried by a tool result, or None if it succeeded.

    `details` takes precedence over top-level fields. A non-zero `exitCode`
    reads as `Command exited with code N`; a zero exit code is a success.
    """
    if not isinstance(result, Mapping):
        return None
    for record in (result.get("details"), result):
        message = _error_from_record(record)
        if message:
            return message
    if result.get("isError") is True:
        return _result_text(result) or "Tool reported an error"
    return None


def is_tool_result_error(result: Any) -> bool:
    return extract_tool_error_message(result) is not None


class ToolErrorTracker:
    """Collects tool metas and the last tool failure while a turn runs."""

    def __init__(self) -> None:
        self._metas: list[ToolMetaEntry] = []
        self._last_error: LastToolError | None = None

    @property
    def tool_metas(self) -> list[ToolMetaEntry]:
        return list(self._metas)

    @property
    def last_tool_error(self) -> LastToolError | None:
        return self._last_error

    def record(
        self,
        tool_name: str,
        result: Any,
        *,
        args: Mapping[str, Any] | None = None,
        meta: str | None = None,
    ) -> None:
        self._metas.append(ToolMetaEntry(tool_name=tool_name, meta=meta))
        mutating = is_mutating_tool_call(tool_name, args)
        fingerprint = build_tool_action_fingerprint(tool_name, args, meta)
        error = extract_tool_error_message(result)
        if error is not None:
            logger.debug("tool.error tool={} mutating={} error={}", tool_name, mutating, error)
            self._last_error = LastToolError(
                tool_name=tool_name,
                meta=meta,
                error=error,
                mutating_action=mutating,
                action_fingerprint=fingerprint,
            )
            return

        # A retried mutating action that now succeeds resolves the earlier failure.
        last = self._last_error
        if last is not None and last.mutating_action and fingerprint and fingerprint == last.action_fingerprint:
            self._last_error = None

    def outcome(
        self,
        *,
        assistant_texts: list[str] | None = None,
        last_assistant: AssistantMessage | Mapping[str, Any] | None = None,
    ) -> AssistantTurnOutcome:
        if isinstance(last_assistant, Mapping):
            last_assistant = AssistantMessage.from_mapping(last_assistant)
        return AssistantTurnOutcome(
            assistant_texts=list(assistant_texts or []),
            tool_metas=self.tool_metas,
            last_assistant=last_assistant,
            last_tool_error=self._last_error,
        )
