import json

import pytest

from brigade import ApiError, ErrorCode, RawResponse, decode_response


def _raw(status, payload):
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    return RawResponse(status=status, body=body)


def test_success_returns_data():
    assert decode_response(_raw(200, {"status": "success", "data": {"id": 1}})) == {"id": 1}


def test_error_envelope_on_2xx():
    with pytest.raises(ApiError) as ei:
        decode_response(
            _raw(200, {"status": "error", "error": {"code": "OUT_OF_STOCK", "message": "Sold out"}})
        )
    assert ei.value.code == "OUT_OF_STOCK"
    assert ei.value.message == "Sold out"
    assert ei.value.status == 200  # noqa: PLR2004


def test_error_code_from_envelope_wins():
    payload = {
        "status": "error",
        "error": {"code": "NOT_FOUND", "message": "Resource not found", "details": {"id": 7}},
    }
    with pytest.raises(ApiError) as ei:
        decode_response(_raw(404, payload))
    assert ei.value.code == "NOT_FOUND"
    assert ei.value.details == {"id": 7}
    assert ei.value.status == 404  # noqa: PLR2004


def test_missing_error_falls_back_to_status():
    with pytest.raises(ApiError) as ei:
        decode_response(_raw(503, {"status": "error"}))
    assert ei.value.code == ErrorCode.SERVER_ERROR
    assert ei.value.message == "An error occurred"


def test_undecodable_body():
    with pytest.raises(ApiError) as ei:
        decode_response(_raw(200, b"<html>oops</html>"))
    assert ei.value.code == ErrorCode.UNKNOWN_ERROR

    with pytest.raises(ApiError) as ei:
        decode_response(_raw(502, b"Bad Gateway"))
    assert ei.value.code == ErrorCode.SERVER_ERROR


def test_non_object_payload():
    with pytest.raises(ApiError) as ei:
        decode_response(_raw(200, [1, 2, 3]))
    assert ei.value.code == ErrorCode.UNKNOWN_ERROR
