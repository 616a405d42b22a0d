"""stdiorpc - JSON-RPC 2.0 client for servers spoken to over stdin/stdout."""

__version__ = "0.1.0"
__logo__ = "⇄"

from stdiorpc.client import ClientSession, RequestDispatcher, SessionState, ToolClient
from stdiorpc.config.schema import ServerConfig
from stdiorpc.transport import ProcessTransport

__all__ = [
    "ClientSession",
    "ProcessTransport",
    "RequestDispatcher",
    "ServerConfig",
    "SessionState",
    "ToolClient",
    "__version__",
]
