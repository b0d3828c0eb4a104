"""Runtime logging helpers."""

from __future__ import annotations

import contextlib
import sys
from collections.abc import Generator
from contextvars import ContextVar
from logging import Handler
from typing import Literal, TextIO

import loguru
from loguru import logger
from rich import get_console
from rich.logging import RichHandler

from replyroute.config import get_settings

LogProfile = Literal["default", "console"]

_PROFILE_FORMATS: dict[LogProfile, str] = {
    "console": "{extra[session]} | {message}",
    "default": "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<6} | {name}:{function}:{line} | {extra[session]} | {message}",
}
_CONFIGURED_PROFILE: LogProfile | None = None
_session_context: ContextVar[str | None] = ContextVar("session", default=None)


def current_session() -> str:
    """Get the session key of the turn being processed, or `-`."""
    return _session_context.get() or "-"


@contextlib.contextmanager
def session_context(session_key: str | None) -> Generator[None, None, None]:
    reset_token = _session_context.set(session_key)
    try:
        yield
    finally:
        _session_context.reset(reset_token)


def _build_console_handler() -> Handler:
    return RichHandler(
        console=get_console(),
        show_level=True,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )


def configure_logging(*, profile: LogProfile = "default") -> None:
    """Configure process-level logging once."""

    def inject_context(record: loguru.Record) -> None:
        record["extra"]["session"] = current_session()

    global _CONFIGURED_PROFILE
    if profile == _CONFIGURED_PROFILE:
        return

    level = get_settings().log_level.upper()
    sink: Handler | TextIO = _build_console_handler() if profile == "console" else sys.stderr
    logger.remove()
    logger.add(
        sink,
        level=level,
        format=_PROFILE_FORMATS[profile],
        backtrace=False,
        diagnose=False,
    )
    logger.configure(patcher=inject_context)
    _CONFIGURED_PROFILE = profile
