"""Reply directive parsing - extract media and reply targets from model output.

Supported directives:
  MEDIA: <url-or-path>       attach media (one line per attachment)
  [[audio_as_voice]]         send audio attachments as voice notes
  [[reply_to_current]]       reply to the triggering message
  [[reply_to:<message_id>]]  reply to a specific message

Lines inside fenced code blocks are left untouched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from replyroute.core.text import SILENT_REPLY_TOKEN, is_silent_reply_text

MEDIA_LINE_RE = re.compile(r"^\s*MEDIA:\s*(.+?)\s*$", re.IGNORECASE)
FENCE_RE = re.compile(r"^\s*(`{3,}|~{3,})")
AUDIO_AS_VOICE_RE = re.compile(r"\[\[\s*audio_as_voice\s*\]\]", re.IGNORECASE)
REPLY_TO_CURRENT_RE = re.compile(r"\[\[\s*reply_to_current\s*\]\]", re.IGNORECASE)
REPLY_TO_ID_RE = re.compile(r"\[\[\s*reply_to\s*:\s*([^\]\s]+)\s*\]\]", re.IGNORECASE)
MEDIA_URL_RE = re.compile(r"^(?:https?://\S+|file://\S+|~?/\S+|\./\S+)$", re.IGNORECASE)
_QUOTE_CHARS = "`\"'"


@dataclass(frozen=True)
class ParsedDirectives:
    """Cleaned text plus the directives found in it."""

    text: str
    media_urls: list[str] = field(default_factory=list)
    audio_as_voice: bool = False
    reply_to_id: str | None = None
    reply_to_current: bool = False
    reply_to_tag: bool = False
    is_silent: bool = False


def _clean_media_token(token: str) -> str | None:
    candidate = token.strip().strip(_QUOTE_CHARS).strip()
    if MEDIA_URL_RE.match(candidate):
        return candidate
    return None


def split_media_from_output(raw: str) -> tuple[str, list[str], bool]:
    """Return (text, media_urls, audio_as_voice) for one model output."""
    audio_as_voice = AUDIO_AS_VOICE_RE.search(raw) is not None
    if audio_as_voice:
        raw = AUDIO_AS_VOICE_RE.sub("", raw)

    media_urls: list[str] = []
    kept: list[str] = []
    fence: str | None = None
    for line in raw.splitlines():
        fence_match = FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(1)
            if fence is None:
                fence = marker[0]
            elif marker[0] == fence:
                fence = None
            kept.append(line)
            continue
        if fence is None:
            media_match = MEDIA_LINE_RE.match(line)
            if media_match:
                tokens = [_clean_media_token(part) for part in media_match.group(1).split()]
                urls = [url for url in tokens if url]
                if urls and len(urls) == len(tokens):
                    media_urls.extend(urls)
                    continue
        kept.append(line)

    text = re.sub(r"\n{3,}", "\n\n", "\n".join(kept)).strip()
    return text, media_urls, audio_as_voice


def parse_reply_directives(
    raw: str | None,
    *,
    current_message_id: str | None = None,
    silent_token: str = SILENT_REPLY_TOKEN,
) -> ParsedDirectives:
    text, media_urls, audio_as_voice = split_media_from_output(raw or "")

    reply_to_id: str | None = None
    reply_to_current = False
    reply_to_tag = False
    if REPLY_TO_CURRENT_RE.search(text):
        text = REPLY_TO_CURRENT_RE.sub("", text)
        reply_to_current = True
        reply_to_tag = True
        reply_to_id = current_message_id
    match = REPLY_TO_ID_RE.search(text)
    if match:
        text = REPLY_TO_ID_RE.sub("", text)
        reply_to_tag = True
        if reply_to_id is None:
            reply_to_id = match.group(1)
    if reply_to_tag:
        text = re.sub(r"[ \t]{2,}", " ", text).strip()

    is_silent = is_silent_reply_text(text, silent_token)
    if is_silent:
        text = ""

    return ParsedDirectives(
        text=text,
        media_urls=media_urls,
        audio_as_voice=audio_as_voice,
        reply_to_id=reply_to_id,
        reply_to_current=reply_to_current,
        reply_to_tag=reply_to_tag,
        is_silent=is_silent,
    )
