"""Tool warning routing and deduplication."""

from replyroute.routing.cache import WarningFingerprintCache, default_fingerprint_cache, reset_warning_routing
from replyroute.routing.policy import WarningRoute, WarningRoutingPolicy, resolve_warning_policy
from replyroute.routing.warnings import WarningRouter, route_warnings

__all__ = [
    "WarningFingerprintCache",
    "WarningRoute",
    "WarningRouter",
    "WarningRoutingPolicy",
    "default_fingerprint_cache",
    "reset_warning_routing",
    "resolve_warning_policy",
    "route_warnings",
]
