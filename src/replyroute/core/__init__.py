"""Turn-outcome payload building."""

from replyroute.core.payloads import (
    RECOVERABLE_TOOL_ERROR_KEYWORDS,
    build_turn_payloads,
    build_warning_fingerprint,
    should_emit_tool_warning_event,
)
from replyroute.core.tool_results import ToolErrorTracker, extract_tool_error_message, is_tool_result_error

__all__ = [
    "RECOVERABLE_TOOL_ERROR_KEYWORDS",
    "ToolErrorTracker",
    "build_turn_payloads",
    "build_warning_fingerprint",
    "extract_tool_error_message",
    "is_tool_result_error",
    "should_emit_tool_warning_event",
]
