"""Line codec for JSON-RPC frames: one compact JSON object per line."""

from __future__ import annotations

import json
from typing import Any

from stdiorpc.core.protocol import JSONRPC_VERSION, RpcError, RpcRequest, RpcResponse
from stdiorpc.utils.exceptions import MalformedMessageError


def safe_dict(value: Any) -> dict[str, Any]:
    """Return the value when dict-like, otherwise an empty dict."""
    return value if isinstance(value, dict) else {}


def _dump_line(payload: dict[str, Any]) -> bytes:
    return (json.dumps(payload, ensure_ascii=False, separators=(",", ":")) + "\n").encode("utf-8")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _load_object(line: bytes | str) -> tuple[dict[str, Any], str]:
    if isinstance(line, bytes):
        try:
            text = line.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedMessageError(f"frame is not valid UTF-8: {exc}", line=repr(line)) from exc
    else:
        text = line
    text = text.strip()
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedMessageError(f"frame is not valid JSON: {exc.msg}", line=text) from exc
    if not isinstance(payload, dict):
        raise MalformedMessageError("frame is not a JSON object", line=text)
    return payload, text


def _check_version(payload: dict[str, Any], text: str, request_id: int | None) -> None:
    if "jsonrpc" not in payload:
        raise MalformedMessageError("frame is missing 'jsonrpc'", line=text, request_id=request_id)
    if payload["jsonrpc"] != JSONRPC_VERSION:
        raise MalformedMessageError(
            f"unsupported jsonrpc version: {payload['jsonrpc']!r}", line=text, request_id=request_id
        )


def encode_request_line(request: RpcRequest) -> bytes:
    """Encode a request frame into one newline-terminated UTF-8 line."""
    payload: dict[str, Any] = {"jsonrpc": request.jsonrpc, "method": request.method}
    if request.params is not None:
        payload["params"] = request.params
    if request.id is not None:
        payload["id"] = request.id
    return _dump_line(payload)


def encode_response_line(response: RpcResponse) -> bytes:
    """Encode a response frame into one newline-terminated UTF-8 line."""
    payload: dict[str, Any] = {"jsonrpc": response.jsonrpc}
    if response.error is not None:
        error: dict[str, Any] = {"code": response.error.code, "message": response.error.message}
        if response.error.data is not None:
            error["data"] = response.error.data
        payload["error"] = error
    else:
        payload["result"] = response.result if response.result is not None else {}
    payload["id"] = response.id
    return _dump_line(payload)


def decode_rpc_error(error: Any, *, text: str = "", request_id: int | None = None) -> RpcError:
    """Validate and convert an error member into RpcError."""
    if not isinstance(error, dict):
        raise MalformedMessageError("'error' is not an object", line=text, request_id=request_id)
    code = error.get("code")
    message = error.get("message")
    if not _is_int(code):
        raise MalformedMessageError("'error.code' is not an integer", line=text, request_id=request_id)
    if not isinstance(message, str):
        raise MalformedMessageError("'error.message' is not a string", line=text, request_id=request_id)
    return RpcError(code=code, message=message, data=error.get("data"))


def _response_from_payload(payload: dict[str, Any], text: str) -> RpcResponse:
    raw_id = payload.get("id")
    request_id = raw_id if _is_int(raw_id) else None
    _check_version(payload, text, request_id)
    if "id" not in payload:
        raise MalformedMessageError("frame is missing 'id'", line=text)

    has_error = payload.get("error") is not None
    has_result = "result" in payload

    if raw_id is None:
        # A server that could not read the request id answers with id null.
        if has_error and not has_result:
            error = decode_rpc_error(payload["error"], text=text)
            return RpcResponse(id=None, error=error, jsonrpc=payload["jsonrpc"])
        raise MalformedMessageError("'id' is null", line=text)
    if request_id is None:
        raise MalformedMessageError(f"'id' is not an integer: {raw_id!r}", line=text)

    if has_error and has_result:
        raise MalformedMessageError("frame carries both 'result' and 'error'", line=text, request_id=request_id)
    if not has_error and not has_result:
        raise MalformedMessageError("frame carries neither 'result' nor 'error'", line=text, request_id=request_id)

    if has_error:
        error = decode_rpc_error(payload["error"], text=text, request_id=request_id)
        return RpcResponse(id=request_id, error=error, jsonrpc=payload["jsonrpc"])

    result = payload["result"]
    if result is None:
        result = {}
    if not isinstance(result, dict):
        raise MalformedMessageError("'result' is not an object", line=text, request_id=request_id)
    return RpcResponse(id=request_id, result=result, jsonrpc=payload["jsonrpc"])


def _request_from_payload(payload: dict[str, Any], text: str) -> RpcRequest:
    raw_id = payload.get("id")
    request_id = raw_id if _is_int(raw_id) else None
    _check_version(payload, text, request_id)
    if raw_id is not None and request_id is None:
        raise MalformedMessageError(f"'id' is not an integer: {raw_id!r}", line=text)
    method = payload.get("method")
    if not isinstance(method, str) or not method:
        raise MalformedMessageError("'method' is missing or not a string", line=text, request_id=request_id)
    params = payload.get("params")
    if params is not None and not isinstance(params, dict):
        raise MalformedMessageError("'params' is not an object", line=text, request_id=request_id)
    return RpcRequest(method=method, params=params, id=request_id, jsonrpc=payload["jsonrpc"])


def decode_response_line(line: bytes | str) -> RpcResponse:
    """Decode one line into RpcResponse, raising MalformedMessageError on any violation.

    The id is None only for an error response the server could not attribute
    to a request.
    """
    payload, text = _load_object(line)
    return _response_from_payload(payload, text)


def decode_request_line(line: bytes | str) -> RpcRequest:
    """Decode one line into RpcRequest (used by stdio servers and test doubles)."""
    payload, text = _load_object(line)
    return _request_from_payload(payload, text)


def decode_message_line(line: bytes | str) -> RpcRequest | RpcResponse:
    """Decode a line read from a server: frames with a 'method' are server-sent
    requests or notifications, everything else must be a response."""
    payload, text = _load_object(line)
    if "method" in payload:
        return _request_from_payload(payload, text)
    return _response_from_payload(payload, text)
