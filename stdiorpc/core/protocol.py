"""JSON-RPC 2.0 frame models exchanged with a stdio server."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

JSONRPC_VERSION = "2.0"


@dataclass(slots=True)
class RpcError:
    """Error member of a response frame."""

    code: int
    message: str
    data: Any = None


@dataclass(slots=True)
class RpcRequest:
    """Request frame. A request without id is a notification."""

    method: str
    params: dict[str, Any] | None = None
    id: int | None = None
    jsonrpc: str = JSONRPC_VERSION

    @property
    def is_notification(self) -> bool:
        return self.id is None


@dataclass(slots=True)
class RpcResponse:
    """Response frame. Exactly one of result/error is set; id is None only on an unattributed error."""

    id: int | None
    result: dict[str, Any] | None = None
    error: RpcError | None = None
    jsonrpc: str = JSONRPC_VERSION

    @property
    def ok(self) -> bool:
        return self.error is None
