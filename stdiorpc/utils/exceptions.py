"""
Exception hierarchy and error handling utilities for stdiorpc.

Provides:
- Custom exception classes with error codes
- Error categorization (recoverable, retryable, fatal)
- Safe error message formatting (no secrets from server env or tokens)
"""

from __future__ import annotations

import json
import re
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Error categories for classification."""
    RECOVERABLE = "recoverable"
    RETRYABLE = "retryable"
    FATAL = "fatal"
    VALIDATION = "validation"
    TIMEOUT = "timeout"


class StdioRpcError(Exception):
    """Base exception for all stdiorpc errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class LaunchError(StdioRpcError):
    """Server process could not be spawned."""

    def __init__(self, command: str, message: str):
        super().__init__(
            f"Failed to launch '{command}': {message}",
            code="LAUNCH_ERROR",
            category=ErrorCategory.FATAL,
            details={"command": command},
        )


class TransportError(StdioRpcError):
    """I/O failure on an open server stream."""

    def __init__(self, message: str, code: str = "TRANSPORT_ERROR", details: dict[str, Any] | None = None):
        super().__init__(message, code=code, category=ErrorCategory.RETRYABLE, details=details)


class TransportClosedError(TransportError):
    """The server stream ended while a call was pending or being written."""

    def __init__(self, message: str = "transport closed"):
        super().__init__(message, code="TRANSPORT_CLOSED")


class MalformedMessageError(StdioRpcError):
    """A frame could not be decoded into a protocol message."""

    def __init__(self, message: str, line: str = "", request_id: int | None = None):
        super().__init__(
            message,
            code="MALFORMED_MESSAGE",
            category=ErrorCategory.VALIDATION,
            details={"line": line[:200], "id": request_id},
        )
        self.line = line
        self.request_id = request_id


class RemoteError(StdioRpcError):
    """The server answered a call with a JSON-RPC error object."""

    def __init__(self, remote_code: int, message: str, data: Any = None, method: str | None = None):
        super().__init__(
            message,
            code="REMOTE_ERROR",
            category=ErrorCategory.RECOVERABLE,
            details={"remote_code": remote_code, "method": method, "data": data},
        )
        self.remote_code = remote_code
        self.data = data
        self.method = method

    def __str__(self) -> str:
        return f"[{self.code} {self.remote_code}] {self.message}"


class ToolCallError(RemoteError):
    """A tool ran but reported failure through its result (isError)."""

    def __init__(self, tool_name: str, message: str, content: list[dict[str, Any]] | None = None):
        super().__init__(0, f"Tool '{tool_name}' error: {message}", data=content, method="tools/call")
        self.code = "TOOL_ERROR"
        self.tool_name = tool_name
        self.details["tool_name"] = tool_name


class SessionClosedError(StdioRpcError):
    """A call was issued on a session that is not running."""

    def __init__(self, message: str = "session is closed"):
        super().__init__(message, code="SESSION_CLOSED", category=ErrorCategory.FATAL)


class TimeoutError(StdioRpcError):
    """A call did not receive its response before the deadline."""

    def __init__(self, operation: str, timeout_seconds: float):
        super().__init__(
            f"Operation '{operation}' timed out after {timeout_seconds}s",
            code="TIMEOUT",
            category=ErrorCategory.TIMEOUT,
            details={"operation": operation, "timeout_seconds": timeout_seconds},
        )


class ConfigError(StdioRpcError):
    """Configuration could not be loaded or does not name the server."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="CONFIG_ERROR", category=ErrorCategory.VALIDATION, details=details)


_SENSITIVE_PATTERNS = [
    re.compile(r"(api[_-]?key|token|secret|password|auth)[=:]\s*['\"]?([^\s'\"]+)['\"]?", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"[a-zA-Z0-9]{32,}"),
    re.compile(r"sk-[a-zA-Z0-9]{20,}"),
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Remove sensitive information from error messages."""
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized


def classify_exception(exc: Exception) -> tuple[str, ErrorCategory, bool]:
    """
    Classify an exception and return (error_code, category, should_retry).

    The client never retries on its own; the flag is advice for callers that
    know their remote method is idempotent.
    """
    if isinstance(exc, StdioRpcError):
        return exc.code, exc.category, exc.category is ErrorCategory.RETRYABLE

    if isinstance(exc, FileNotFoundError):
        return "FILE_NOT_FOUND", ErrorCategory.FATAL, False

    if isinstance(exc, BrokenPipeError):
        return "TRANSPORT_CLOSED", ErrorCategory.RETRYABLE, True

    if isinstance(exc, json.JSONDecodeError):
        return "JSON_PARSE_ERROR", ErrorCategory.VALIDATION, False

    if isinstance(exc, OSError):
        return "OS_ERROR", ErrorCategory.RETRYABLE, True

    if isinstance(exc, ValueError):
        return "INVALID_VALUE", ErrorCategory.VALIDATION, False

    return "INTERNAL_ERROR", ErrorCategory.FATAL, False
