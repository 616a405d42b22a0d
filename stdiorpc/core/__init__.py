"""Shared protocol types and line codec."""

from .protocol import JSONRPC_VERSION, RpcError, RpcRequest, RpcResponse
from .serialization import (
    decode_message_line,
    decode_request_line,
    decode_response_line,
    decode_rpc_error,
    encode_request_line,
    encode_response_line,
    safe_dict,
)

__all__ = [
    "JSONRPC_VERSION",
    "RpcError",
    "RpcRequest",
    "RpcResponse",
    "decode_message_line",
    "decode_request_line",
    "decode_response_line",
    "decode_rpc_error",
    "encode_request_line",
    "encode_response_line",
    "safe_dict",
]
