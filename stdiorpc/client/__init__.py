"""Client side: dispatcher, session lifecycle and tool facade."""

from .dispatcher import RequestDispatcher
from .session import ClientSession, SessionState
from .tools import ToolClient, ToolInfo, ToolResult

__all__ = [
    "ClientSession",
    "RequestDispatcher",
    "SessionState",
    "ToolClient",
    "ToolInfo",
    "ToolResult",
]
