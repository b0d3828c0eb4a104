"""replyroute - decide what a finished agent turn shows, and where tool warnings go."""

from .config import AppConfig, load_config, load_config_lenient
from .core import build_turn_payloads
from .routing import WarningRouter, reset_warning_routing, route_warnings
from .types import AssistantMessage, AssistantTurnOutcome, BuildOptions, ReplyPayload, TurnPayloads, WarningEvent

__version__ = "0.1.0"

__all__ = [
    "AppConfig",
    "AssistantMessage",
    "AssistantTurnOutcome",
    "BuildOptions",
    "ReplyPayload",
    "TurnPayloads",
    "WarningEvent",
    "WarningRouter",
    "build_turn_payloads",
    "load_config",
    "load_config_lenient",
    "reset_warning_routing",
    "route_warnings",
]
