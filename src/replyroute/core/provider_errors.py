"""Classification and user-facing rendering of LLM provider errors."""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass
from typing import Any, TypeAlias

from loguru import logger

from replyroute.types import AssistantMessage

MAX_RAW_ERROR_CHARS = 600

GENERIC_ERROR_TEXT = "The AI service returned an error. Please try again."
UNKNOWN_ERROR_TEXT = "LLM request failed with an unknown error."
OVERLOADED_ERROR_TEXT = "The AI service is temporarily overloaded. Please try again in a moment."
RATE_LIMIT_ERROR_TEXT = "⚠️ API rate limit reached. Please try again later."
TIMEOUT_ERROR_TEXT = "LLM request timed out. Please try again."
CONTEXT_OVERFLOW_ERROR_TEXT = (
    "Context overflow: prompt too large for the model. Try again with less input or a larger-context model."
)
ROLE_ORDERING_ERROR_TEXT = (
    "Message ordering conflict - please try again. If this persists, use /new to start a fresh session."
)

ERROR_PAYLOAD_PREFIX_RE = re.compile(
    r"^(?:error|api\s*error|apierror|openai\s*error|anthropic\s*error|gateway\s*error)[:\s-]+",
    re.IGNORECASE,
)
HTTP_STATUS_PREFIX_RE = re.compile(r"^(?:http\s*)?(\d{3})\s+(.+)$", re.IGNORECASE | re.DOTALL)

ErrorPattern: TypeAlias = re.Pattern[str] | str

# Checked in order; the first category with a matching pattern wins.
ERROR_CATEGORY_PATTERNS: dict[str, tuple[ErrorPattern, ...]] = {
    "context_overflow": (
        "context length exceeded",
        "maximum context length",
        "prompt is too long",
        "request_too_large",
        "exceeds model context window",
        "context window exceeded",
    ),
    "role_ordering": (
        "incorrect role information",
        "roles must alternate",
    ),
    "overloaded": (
        re.compile(r'overloaded_error|"type"\s*:\s*"overloaded_error"', re.IGNORECASE),
        "overloaded",
    ),
    "billing": (
        re.compile(r"[\"']?(?:status|code)[\"']?\s*[:=]\s*402\b", re.IGNORECASE),
        re.compile(r"^\s*(?:http\s*)?402\b", re.IGNORECASE),
        "payment required",
        "insufficient credits",
        "insufficient balance",
        "credit balance",
        "plans & billing",
    ),
    "rate_limit": (
        re.compile(r"rate[_ ]limit|too many requests|\b429\b", re.IGNORECASE),
        "exceeded your current quota",
        "resource has been exhausted",
        "quota exceeded",
        "resource_exhausted",
        "usage limit",
    ),
    "timeout": (
        "timeout",
        "timed out",
        "deadline exceeded",
    ),
}

_CATEGORY_MESSAGES: dict[str, str] = {
    "context_overflow": CONTEXT_OVERFLOW_ERROR_TEXT,
    "role_ordering": ROLE_ORDERING_ERROR_TEXT,
    "overloaded": OVERLOADED_ERROR_TEXT,
    "rate_limit": RATE_LIMIT_ERROR_TEXT,
    "timeout": TIMEOUT_ERROR_TEXT,
}


@dataclass(frozen=True)
class ApiErrorInfo:
    """Fields extracted from a raw provider error string."""

    http_code: str | None = None
    type: str | None = None
    message: str | None = None
    request_id: str | None = None


def format_billing_error_message(provider: str | None = None) -> str:
    name = (provider or "").strip()
    if name:
        return (
            f"⚠️ {name} returned a billing error: your API key has run out of credits or has an "
            f"insufficient balance. Check your {name} billing dashboard and top up or switch to a "
            "different API key."
        )
    return (
        "⚠️ API provider returned a billing error: your API key has run out of credits or has an "
        "insufficient balance. Check your provider's billing dashboard and top up or switch to a "
        "different API key."
    )


BILLING_ERROR_USER_MESSAGE = format_billing_error_message()


def _matches(pattern: ErrorPattern, raw: str) -> bool:
    if isinstance(pattern, str):
        return pattern in raw.lower()
    return pattern.search(raw) is not None


def classify_provider_error(raw: str | None) -> str | None:
    """Return the first error category whose patterns match, or None."""
    if not raw:
        return None
    for category, patterns in ERROR_CATEGORY_PATTERNS.items():
        if any(_matches(pattern, raw) for pattern in patterns):
            return category
    return None


def is_billing_error_message(raw: str | None) -> bool:
    return classify_provider_error(raw) == "billing"


def is_overloaded_error_message(raw: str | None) -> bool:
    return classify_provider_error(raw) == "overloaded"


def _is_error_payload_object(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    if payload.get("type") == "error":
        return True
    if isinstance(payload.get("request_id"), str) or isinstance(payload.get("requestId"), str):
        return True
    error = payload.get("error")
    if isinstance(error, dict):
        return any(isinstance(error.get(key), str) for key in ("message", "type", "code"))
    return False


def parse_api_error_payload(raw: str | None) -> dict[str, Any] | None:
    """Parse a raw provider error payload, returning None for anything else."""
    if not raw:
        return None
    trimmed = raw.strip()
    if not trimmed:
        return None
    candidates = [trimmed]
    if ERROR_PAYLOAD_PREFIX_RE.match(trimmed):
        candidates.append(ERROR_PAYLOAD_PREFIX_RE.sub("", trimmed, count=1).strip())
    for candidate in candidates:
        if not (candidate.startswith("{") and candidate.endswith("}")):
            continue
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if _is_error_payload_object(parsed):
            return parsed
    return None


def get_api_error_payload_fingerprint(raw: str | None) -> str | None:
    """Hash of the parsed payload; compact and pretty-printed renderings agree."""
    payload = parse_api_error_payload(raw)
    if payload is None:
        return None
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha1(canonical.encode("utf-8")).hexdigest()


def is_raw_api_error_payload(raw: str | None) -> bool:
    return get_api_error_payload_fingerprint(raw) is not None


def is_likely_http_error_text(raw: str | None) -> bool:
    match = HTTP_STATUS_PREFIX_RE.match((raw or "").strip())
    if match is None:
        return False
    return 400 <= int(match.group(1)) < 600


def parse_api_error_info(raw: str | None) -> ApiErrorInfo | None:
    trimmed = (raw or "").strip()
    if not trimmed:
        return None
    http_code: str | None = None
    candidate = trimmed
    match = HTTP_STATUS_PREFIX_RE.match(trimmed)
    if match is not None:
        http_code = match.group(1)
        candidate = match.group(2).strip()
    payload = parse_api_error_payload(candidate)
    if payload is None:
        return None

    request_id = payload.get("request_id") or payload.get("requestId")
    top_type = payload.get("type")
    top_message = payload.get("message")
    error = payload.get("error")
    error_type = error_message = None
    if isinstance(error, dict):
        error_type = error.get("type")
        error_message = error.get("message")
    elif isinstance(error, str):
        error_message = error

    return ApiErrorInfo(
        http_code=http_code,
        type=_first_str(error_type, top_type),
        message=_first_str(error_message, top_message),
        request_id=request_id if isinstance(request_id, str) else None,
    )


def _first_str(*values: Any) -> str | None:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value
    return None


def _truncate(text: str) -> str:
    if len(text) > MAX_RAW_ERROR_CHARS:
        return f"{text[:MAX_RAW_ERROR_CHARS]}…"
    return text


def format_raw_assistant_error_for_ui(raw: str | None) -> str:
    """Render a raw provider error as one readable line."""
    trimmed = (raw or "").strip()
    if not trimmed:
        return UNKNOWN_ERROR_TEXT

    match = HTTP_STATUS_PREFIX_RE.match(trimmed)
    if match is not None:
        rest = match.group(2).strip()
        if not rest.startswith("{"):
            return f"HTTP {match.group(1)}: {rest}"

    info = parse_api_error_info(trimmed)
    if info is not None and info.message:
        prefix = f"HTTP {info.http_code}" if info.http_code else "LLM error"
        error_type = f" {info.type}" if info.type else ""
        request_id = f" (request_id: {info.request_id})" if info.request_id else ""
        return f"{prefix}{error_type}: {info.message}{request_id}"

    return _truncate(trimmed)


def format_assistant_error_text(message: AssistantMessage | None, *, provider: str | None = None) -> str | None:
    """Friendly error text for an errored assistant message; None when it did not error."""
    if message is None or message.stop_reason != "error":
        return None
    raw = (message.error_message or "").strip()
    if not raw:
        return UNKNOWN_ERROR_TEXT

    category = classify_provider_error(raw)
    if category == "billing":
        return format_billing_error_message(provider or message.provider)
    if category is not None:
        return _CATEGORY_MESSAGES[category]

    if is_likely_http_error_text(raw) or is_raw_api_error_payload(raw):
        return format_raw_assistant_error_for_ui(raw)

    if len(raw) > MAX_RAW_ERROR_CHARS:
        logger.warning("provider.error.long chars={}", len(raw))
    return _truncate(raw)
