"""Utility helpers for stdiorpc."""

from stdiorpc.utils.exceptions import (
    ConfigError,
    ErrorCategory,
    LaunchError,
    MalformedMessageError,
    RemoteError,
    SessionClosedError,
    StdioRpcError,
    TimeoutError,
    ToolCallError,
    TransportClosedError,
    TransportError,
    classify_exception,
    sanitize_error_message,
)

__all__ = [
    "ConfigError",
    "ErrorCategory",
    "LaunchError",
    "MalformedMessageError",
    "RemoteError",
    "SessionClosedError",
    "StdioRpcError",
    "TimeoutError",
    "ToolCallError",
    "TransportClosedError",
    "TransportError",
    "classify_exception",
    "sanitize_error_message",
]
