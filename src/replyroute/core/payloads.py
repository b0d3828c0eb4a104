"""Turn outcome to user-facing reply payloads and tool warning events."""

from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass, field

from loguru import logger

from replyroute.core.assistant import (
    extract_assistant_text,
    extract_assistant_thinking,
    format_reasoning_message,
    has_tool_calls,
)
from replyroute.core.directives import ParsedDirectives, parse_reply_directives
from replyroute.core.provider_errors import (
    BILLING_ERROR_USER_MESSAGE,
    GENERIC_ERROR_TEXT,
    format_assistant_error_text,
    format_raw_assistant_error_for_ui,
    get_api_error_payload_fingerprint,
    is_raw_api_error_payload,
)
from replyroute.core.text import (
    SILENT_REPLY_TOKEN,
    is_silent_reply_text,
    normalize_text_for_comparison,
    texts_match,
)
from replyroute.core.tool_display import format_tool_aggregate
from replyroute.core.tool_mutation import is_exec_like_tool_name, is_likely_mutating_tool_name
from replyroute.types import (
    AssistantMessage,
    AssistantTurnOutcome,
    BuildOptions,
    LastToolError,
    ReplyPayload,
    TurnPayloads,
    WarningEvent,
)

WARNING_PREFIX = "\u26a0\ufe0f"

# Errors that read as "call the tool with different arguments"; the model usually recovers on its own.
RECOVERABLE_TOOL_ERROR_KEYWORDS = (
    "required",
    "missing",
    "invalid",
    "must be",
    "must have",
    "needs",
    "requires",
)


@dataclass(frozen=True)
class ToolWarningDecision:
    should_emit: bool
    is_mutating: bool


@dataclass
class _ReplyItem:
    text: str
    media: list[str] = field(default_factory=list)
    is_error: bool | None = None
    audio_as_voice: bool = False
    reply_to_id: str | None = None
    reply_to_tag: bool = False
    reply_to_current: bool = False

    @classmethod
    def from_directives(cls, parsed: ParsedDirectives) -> _ReplyItem:
        return cls(
            text=parsed.text,
            media=list(parsed.media_urls),
            audio_as_voice=parsed.audio_as_voice,
            reply_to_id=parsed.reply_to_id,
            reply_to_tag=parsed.reply_to_tag,
            reply_to_current=parsed.reply_to_current,
        )


def is_recoverable_tool_error(error: str | None) -> bool:
    lowered = (error or "").lower()
    return any(keyword in lowered for keyword in RECOVERABLE_TOOL_ERROR_KEYWORDS)


def should_emit_tool_warning_event(
    last_tool_error: LastToolError,
    *,
    has_user_facing_reply: bool,
    suppress_tool_errors: bool,
) -> ToolWarningDecision:
    """Decide whether a tool error becomes a structured warning event.

    Mutating and exec/bash tools always emit. Other tools respect
    `suppress_tool_errors`, stay quiet when the turn already has a reply,
    and skip errors that look recoverable.
    """
    if last_tool_error.mutating_action is not None:
        is_mutating = last_tool_error.mutating_action
    else:
        is_mutating = is_likely_mutating_tool_name(last_tool_error.tool_name)
    if is_mutating or is_exec_like_tool_name(last_tool_error.tool_name):
        return ToolWarningDecision(should_emit=True, is_mutating=is_mutating)
    if suppress_tool_errors:
        return ToolWarningDecision(should_emit=False, is_mutating=is_mutating)
    return ToolWarningDecision(
        should_emit=not has_user_facing_reply and not is_recoverable_tool_error(last_tool_error.error),
        is_mutating=is_mutating,
    )


def build_warning_fingerprint(last_tool_error: LastToolError) -> str:
    """SHA-1 of the action fingerprint, or of `tool|meta|error` when there is none."""
    source = last_tool_error.action_fingerprint
    if source is None:
        source = f"{last_tool_error.tool_name}|{last_tool_error.meta or ''}|{last_tool_error.error or ''}"
    return hashlib.sha1(source.encode("utf-8")).hexdigest()


class _RawErrorSuppressor:
    """Recognizes answer texts that only repeat the provider error of an errored turn."""

    def __init__(self, message: AssistantMessage | None, error_text: str | None) -> None:
        self._errored = message is not None and message.stop_reason == "error"
        raw = (message.error_message or "").strip() if self._errored and message else ""
        self._raw_fingerprint = get_api_error_payload_fingerprint(raw) if raw else None
        candidates = [GENERIC_ERROR_TEXT, BILLING_ERROR_USER_MESSAGE]
        if error_text:
            candidates.append(error_text)
        if raw:
            candidates.extend([raw, format_raw_assistant_error_for_ui(raw)])
        self._known = {normalized for normalized in map(normalize_text_for_comparison, candidates) if normalized}

    def __call__(self, text: str) -> bool:
        if not self._errored:
            return False
        trimmed = text.strip()
        if not trimmed:
            return False
        if normalize_text_for_comparison(trimmed) in self._known:
            return True
        if self._raw_fingerprint and get_api_error_payload_fingerprint(trimmed) == self._raw_fingerprint:
            return True
        return is_raw_api_error_payload(trimmed)


def _has_user_facing_reply(items: list[_ReplyItem], message: AssistantMessage | None) -> bool:
    if not items:
        return False
    if has_tool_calls(message):
        return False
    return message is None or message.stop_reason != "toolUse"


def _build_warning(
    last_tool_error: LastToolError,
    items: list[_ReplyItem],
    *,
    has_user_facing_reply: bool,
    suppress_tool_errors: bool,
    markdown: bool,
) -> WarningEvent | None:
    decision = should_emit_tool_warning_event(
        last_tool_error,
        has_user_facing_reply=has_user_facing_reply,
        suppress_tool_errors=suppress_tool_errors,
    )
    if not decision.should_emit:
        return None

    metas = [last_tool_error.meta] if last_tool_error.meta else None
    tool_summary = format_tool_aggregate(last_tool_error.tool_name, metas, markdown=markdown)
    error_suffix = f": {last_tool_error.error}" if last_tool_error.error else ""
    text = f"{WARNING_PREFIX} {tool_summary} failed{error_suffix}"

    if any(texts_match(text, item.text) for item in items):
        logger.debug("payloads.warning.duplicate tool={}", last_tool_error.tool_name)
        return None

    return WarningEvent(
        text=text,
        tool_name=last_tool_error.tool_name,
        tool_summary=tool_summary,
        error_text=last_tool_error.error,
        is_mutating=decision.is_mutating,
        fingerprint=build_warning_fingerprint(last_tool_error),
        ts=int(time.time() * 1000),
    )


def _finalize(items: list[_ReplyItem]) -> list[ReplyPayload]:
    audio_requested = any(item.audio_as_voice for item in items)
    payloads: list[ReplyPayload] = []
    for item in items:
        text = item.text.strip() or None
        media = list(item.media)
        if text is None and not media:
            continue
        if text is not None and is_silent_reply_text(text, SILENT_REPLY_TOKEN):
            continue
        payloads.append(
            ReplyPayload(
                text=text,
                media_url=media[0] if media else None,
                media_urls=media or None,
                reply_to_id=item.reply_to_id,
                is_error=item.is_error,
                audio_as_voice=True if item.audio_as_voice or (audio_requested and media) else None,
                reply_to_tag=item.reply_to_tag or None,
                reply_to_current=item.reply_to_current or None,
            )
        )
    return payloads


def build_turn_payloads(outcome: AssistantTurnOutcome, options: BuildOptions | None = None) -> TurnPayloads:
    """Build the ordered reply payloads and warning events for one finished turn."""
    options = options or BuildOptions()
    message = outcome.last_assistant
    markdown = options.tool_result_format == "markdown"
    suppress_tool_errors = bool(options.config and options.config.messages.suppress_tool_errors)
    items: list[_ReplyItem] = []

    error_text = format_assistant_error_text(message, provider=options.provider)
    if error_text:
        items.append(_ReplyItem(text=error_text, is_error=True))

    if options.inline_tool_results_allowed and options.verbose_level != "off":
        for entry in outcome.tool_metas:
            summary = format_tool_aggregate(entry.tool_name, [entry.meta] if entry.meta else None, markdown=markdown)
            parsed = parse_reply_directives(summary)
            if parsed.text:
                items.append(_ReplyItem.from_directives(parsed))

    if message is not None and options.reasoning_level == "on":
        reasoning = format_reasoning_message(extract_assistant_thinking(message))
        if reasoning:
            items.append(_ReplyItem(text=reasoning))

    is_raw_error = _RawErrorSuppressor(message, error_text)
    candidates = list(outcome.assistant_texts)
    if not candidates:
        fallback = extract_assistant_text(message)
        candidates = [fallback] if fallback else []
    for candidate in candidates:
        if is_raw_error(candidate):
            logger.debug("payloads.answer.suppressed session={}", options.session_key)
            continue
        parsed = parse_reply_directives(candidate)
        if not parsed.text and not parsed.media_urls and not parsed.audio_as_voice:
            continue
        items.append(_ReplyItem.from_directives(parsed))

    warnings: list[WarningEvent] = []
    if outcome.last_tool_error is not None:
        warning = _build_warning(
            outcome.last_tool_error,
            items,
            has_user_facing_reply=_has_user_facing_reply(items, message),
            suppress_tool_errors=suppress_tool_errors,
            markdown=markdown,
        )
        if warning is not None:
            warnings.append(warning)

    payloads = _finalize(items)
    logger.debug(
        "payloads.built session={} payloads={} warnings={}", options.session_key, len(payloads), len(warnings)
    )
    return TurnPayloads(payloads=payloads, warnings=warnings)
