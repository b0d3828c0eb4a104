"""Application-level exception types for replyroute."""

from __future__ import annotations


class ReplyRouteError(Exception):
    """Base exception for replyroute."""


class ConfigurationError(ReplyRouteError):
    """Base exception for configuration validation errors."""


class InvalidConfigError(ConfigurationError):
    """Raised when a configuration mapping does not match the expected shape."""


class DeliveryError(ReplyRouteError):
    """Raised by channel adapters when a message cannot be delivered."""
