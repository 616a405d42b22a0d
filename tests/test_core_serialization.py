import json

import pytest

from stdiorpc.core.protocol import RpcError, RpcRequest, RpcResponse
from stdiorpc.core.serialization import (
    decode_message_line,
    decode_request_line,
    decode_response_line,
    encode_request_line,
    encode_response_line,
    safe_dict,
)
from stdiorpc.utils.exceptions import MalformedMessageError


def test_encode_request_line_is_one_compact_json_line():
    line = encode_request_line(
        RpcRequest(method="tools/call", params={"name": "list_projects", "arguments": {}}, id=1)
    )
    assert line.endswith(b"\n")
    assert line.count(b"\n") == 1
    assert json.loads(line) == {
        "jsonrpc": "2.0",
        "method": "tools/call",
        "params": {"name": "list_projects", "arguments": {}},
        "id": 1,
    }


def test_encode_request_keeps_markup_and_unicode_unescaped():
    line = encode_request_line(
        RpcRequest(method="tools/call", params={"description": "<p>Created via MCP client</p> ✓ 任务"}, id=2)
    )
    text = line.decode("utf-8")
    assert "<p>Created via MCP client</p>" in text
    assert "✓ 任务" in text
    assert "\\u" not in text


def test_encode_request_omits_missing_params_and_notification_id():
    payload = json.loads(encode_request_line(RpcRequest(method="notifications/initialized")))
    assert payload == {"jsonrpc": "2.0", "method": "notifications/initialized"}


def test_decode_success_response():
    response = decode_response_line(b'{"jsonrpc":"2.0","result":{"projects":[]},"id":1}\n')
    assert response == RpcResponse(id=1, result={"projects": []})
    assert response.ok


def test_decode_error_response_keeps_data():
    response = decode_response_line(
        '{"jsonrpc":"2.0","error":{"code":-32601,"message":"Method not found","data":{"m":"x"}},"id":7}'
    )
    assert not response.ok
    assert response.result is None
    assert response.error == RpcError(code=-32601, message="Method not found", data={"m": "x"})


def test_decode_null_error_with_result_is_success():
    response = decode_response_line('{"jsonrpc":"2.0","result":{"a":1},"error":null,"id":3}')
    assert response.ok
    assert response.result == {"a": 1}


def test_decode_null_result_becomes_empty_mapping():
    response = decode_response_line('{"jsonrpc":"2.0","result":null,"id":4}')
    assert response.result == {}


def test_decode_preserves_large_integers():
    big = 2**53 + 1
    response = decode_response_line(json.dumps({"jsonrpc": "2.0", "result": {"n": big}, "id": big}))
    assert response.id == big
    assert response.result == {"n": big}


@pytest.mark.parametrize(
    "line",
    [
        b"not json",
        b"[1, 2, 3]",
        b'"just a string"',
        b'{"result": {}, "id": 1}',
        b'{"jsonrpc": "1.0", "result": {}, "id": 1}',
        b'{"jsonrpc": "2.0", "result": {}}',
        b'{"jsonrpc": "2.0", "result": {}, "id": null}',
        b'{"jsonrpc": "2.0", "error": {"code": "x", "message": "m"}, "id": null}',
        b'{"jsonrpc": "2.0", "result": {}, "id": "abc"}',
        b'{"jsonrpc": "2.0", "result": {}, "id": true}',
        b'{"jsonrpc": "2.0", "id": 1}',
        b'{"jsonrpc": "2.0", "result": {}, "error": {"code": 1, "message": "x"}, "id": 1}',
        b'{"jsonrpc": "2.0", "result": [1, 2], "id": 1}',
        b'{"jsonrpc": "2.0", "error": {"message": "x"}, "id": 1}',
        b'{"jsonrpc": "2.0", "error": {"code": 1}, "id": 1}',
        b'{"jsonrpc": "2.0", "error": "oops", "id": 1}',
        b"\xff\xfe\x00",
    ],
)
def test_decode_rejects_malformed_frames(line):
    with pytest.raises(MalformedMessageError):
        decode_response_line(line)


def test_malformed_error_reports_extractable_id():
    with pytest.raises(MalformedMessageError) as info:
        decode_response_line(b'{"jsonrpc": "2.0", "id": 12}')
    assert info.value.request_id == 12
    assert info.value.code == "MALFORMED_MESSAGE"


def test_malformed_error_without_id():
    with pytest.raises(MalformedMessageError) as info:
        decode_response_line(b"{broken")
    assert info.value.request_id is None
    assert "{broken" in info.value.line


def test_request_roundtrip_with_nested_unicode_params():
    request = RpcRequest(
        method="tools/call",
        params={
            "name": "vikunja_create_task",
            "arguments": {"project_id": 1, "title": "Tâche ✓", "description": "<b>hi</b>", "priority": 3},
        },
        id=2,
    )
    assert decode_request_line(encode_request_line(request)) == request


def test_response_roundtrip_success_and_error():
    ok = RpcResponse(id=5, result={"nested": {"list": [1, "два", None]}})
    failed = RpcResponse(id=6, error=RpcError(code=-32000, message="säkert fel", data=[1]))
    assert decode_response_line(encode_response_line(ok)) == ok
    assert decode_response_line(encode_response_line(failed)) == failed


def test_encode_decode_of_wire_line_is_stable():
    line = b'{"jsonrpc":"2.0","result":{"projects":[]},"id":1}\n'
    assert encode_response_line(decode_response_line(line)) == line


def test_decode_request_rejects_non_object_params():
    with pytest.raises(MalformedMessageError):
        decode_request_line(b'{"jsonrpc": "2.0", "method": "x", "params": [1], "id": 1}')


def test_safe_dict_with_non_dict_payload():
    assert safe_dict("boom") == {}
    assert safe_dict({"a": 1}) == {"a": 1}


def test_decode_error_response_with_null_id():
    response = decode_response_line(b'{"jsonrpc":"2.0","error":{"code":-32700,"message":"Parse error"},"id":null}')
    assert response.id is None
    assert response.error == RpcError(code=-32700, message="Parse error")


def test_decode_message_line_tells_server_messages_from_responses():
    notification = decode_message_line(b'{"jsonrpc":"2.0","method":"notifications/message","params":{"level":"info"}}')
    request = decode_message_line(b'{"jsonrpc":"2.0","method":"roots/list","id":9}')
    response = decode_message_line(b'{"jsonrpc":"2.0","result":{},"id":9}')

    assert notification == RpcRequest(method="notifications/message", params={"level": "info"})
    assert notification.is_notification
    assert request == RpcRequest(method="roots/list", id=9)
    assert response == RpcResponse(id=9, result={})


def test_decode_message_line_rejects_bad_server_message():
    with pytest.raises(MalformedMessageError):
        decode_message_line(b'{"jsonrpc":"2.0","method":"notifications/message","params":"nope"}')
