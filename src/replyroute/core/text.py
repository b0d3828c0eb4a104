"""Canonical text normalization and silent-reply detection."""

from __future__ import annotations

import re
import unicodedata

SILENT_REPLY_TOKEN = "NO_REPLY"

WHITESPACE_RE = re.compile(r"\s+")
# Variation selectors, zero-width joiner and keycap combiner glue emoji sequences together.
_EMOJI_JOINERS = frozenset({"\ufe0e", "\ufe0f", "\u200d", "\u20e3"})
_SKIN_TONE_RANGE = range(0x1F3FB, 0x1F400)


def _is_pictographic(char: str) -> bool:
    if char in _EMOJI_JOINERS or ord(char) in _SKIN_TONE_RANGE:
        return True
    return unicodedata.category(char) == "So"


def normalize_text_for_comparison(text: str | None) -> str:
    """Normalize text for duplicate detection.

    Case-folds, drops emoji and pictographic symbols, and collapses runs of
    whitespace. Applying it twice gives the same result as applying it once.
    """
    if not text:
        return ""
    folded = text.strip().casefold()
    stripped = "".join(char for char in folded if not _is_pictographic(char))
    return WHITESPACE_RE.sub(" ", stripped).strip()


def texts_match(left: str | None, right: str | None) -> bool:
    """Compare two texts under the canonical normalization; empty never matches."""
    normalized_left = normalize_text_for_comparison(left)
    return bool(normalized_left) and normalized_left == normalize_text_for_comparison(right)


def is_silent_reply_text(text: str | None, token: str = SILENT_REPLY_TOKEN) -> bool:
    if not text:
        return False
    escaped = re.escape(token)
    if re.match(rf"^\s*{escaped}(?=$|\W)", text):
        return True
    return re.search(rf"\b{escaped}\b\W*$", text) is not None
