"""Human-readable tool summaries for inline results and warnings."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

DEFAULT_TOOL_EMOJI = "\U0001f9e9"
EXEC_FLAGS = frozenset({"elevated", "pty"})
PATH_LIKE_RE = re.compile(r"^~?(/[^\s]+)+$")


@dataclass(frozen=True)
class ToolDisplay:
    emoji: str
    label: str


TOOL_DISPLAY: dict[str, ToolDisplay] = {
    "exec": ToolDisplay("\U0001f6e0\ufe0f", "Exec"),
    "bash": ToolDisplay("\U0001f6e0\ufe0f", "Bash"),
    "process": ToolDisplay("\U0001f9f0", "Process"),
    "read": ToolDisplay("\U0001f4d6", "Read"),
    "write": ToolDisplay("\u270d\ufe0f", "Write"),
    "edit": ToolDisplay("\U0001f4dd", "Edit"),
    "apply_patch": ToolDisplay("\U0001fa79", "Apply Patch"),
    "browser": ToolDisplay("\U0001f310", "Browser"),
    "web_search": ToolDisplay("\U0001f50e", "Web Search"),
    "web_fetch": ToolDisplay("\U0001f4c4", "Web Fetch"),
    "message": ToolDisplay("\u2709\ufe0f", "Message"),
    "sessions_send": ToolDisplay("\U0001f4e8", "Session Send"),
    "session_status": ToolDisplay("\U0001f4ca", "Session Status"),
    "cron": ToolDisplay("\u23f0", "Cron"),
    "gateway": ToolDisplay("\U0001f50c", "Gateway"),
    "canvas": ToolDisplay("\U0001f5bc\ufe0f", "Canvas"),
    "nodes": ToolDisplay("\U0001f4e1", "Nodes"),
}


def _default_label(name: str) -> str:
    words = [word for word in re.split(r"[_\-\s.]+", name) if word]
    if not words:
        return "Tool"
    return " ".join(word[:1].upper() + word[1:] for word in words)


def resolve_tool_display(tool_name: str | None) -> ToolDisplay:
    name = (tool_name or "").strip()
    known = TOOL_DISPLAY.get(name.lower())
    if known is not None:
        return known
    return ToolDisplay(DEFAULT_TOOL_EMOJI, _default_label(name))


def shorten_meta(meta: str, home: str | None = None) -> str:
    home = str(Path.home()) if home is None else home
    if not home or home == "/":
        return meta
    if meta == home or meta.startswith(f"{home}/"):
        meta = "~" + meta[len(home) :]
    return meta.replace(f" {home}/", " ~/")


def is_path_like(value: str) -> bool:
    if not value or " " in value or "://" in value or "·" in value:
        return False
    if "&&" in value or "||" in value:
        return False
    return PATH_LIKE_RE.match(value) is not None


def _split_exec_flags(meta: str) -> tuple[list[str], str]:
    flags: list[str] = []
    body: list[str] = []
    for part in (p.strip() for p in meta.split(" · ")):
        if not part:
            continue
        if part in EXEC_FLAGS:
            flags.append(part)
        else:
            body.append(part)
    return flags, " · ".join(body)


def _maybe_wrap_markdown(value: str, markdown: bool) -> str:
    if not markdown or "`" in value:
        return value
    return f"`{value}`"


def _format_meta(tool_name: str | None, meta: str, markdown: bool) -> str:
    if (tool_name or "").strip().lower() in {"exec", "bash"}:
        flags, body = _split_exec_flags(meta)
        if flags:
            if not body:
                return " · ".join(flags)
            return f"{' · '.join(flags)} · {_maybe_wrap_markdown(body, markdown)}"
    return _maybe_wrap_markdown(meta, markdown)


def format_tool_aggregate(
    tool_name: str | None,
    metas: list[str] | None = None,
    *,
    markdown: bool = False,
    home: str | None = None,
) -> str:
    """Summarize one tool and its metas, e.g. `📖 Read: ~/src/{a.py, b.py}`."""
    display = resolve_tool_display(tool_name)
    prefix = f"{display.emoji} {display.label}"
    filtered = [shorten_meta(meta, home) for meta in (metas or []) if meta]
    if not filtered:
        return prefix

    raw_segments: list[str] = []
    grouped: dict[str, list[str]] = {}
    for meta in filtered:
        if not is_path_like(meta) or "→" in meta:
            raw_segments.append(meta)
            continue
        directory, _, base = meta.rpartition("/")
        if directory:
            grouped.setdefault(directory, []).append(base)
        else:
            grouped.setdefault(".", []).append(meta)

    segments = list(raw_segments)
    for directory, files in grouped.items():
        brace = f"{{{', '.join(files)}}}" if len(files) > 1 else files[0]
        segments.append(brace if directory == "." else f"{directory}/{brace}")

    return f"{prefix}: {_format_meta(tool_name, '; '.join(segments), markdown)}"
