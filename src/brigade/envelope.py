from typing import Any

from .classifier import code_for_status
from .errors import ApiError, ErrorCode
from .types import RawResponse


def decode_response(raw: RawResponse) -> Any:
    """Unwrap the `{status, data, error}` envelope.

    Raises ApiError when the HTTP status is not 2xx or the envelope says
    `status: "error"`. The envelope's own error code wins; otherwise the code
    comes from the HTTP status.
    """
    status_code = code_for_status(raw.status) if not raw.ok else None
    try:
        payload = raw.json()
    except ValueError as e:
        raise ApiError(
            status_code or ErrorCode.UNKNOWN_ERROR,
            f"Could not decode response body (HTTP {raw.status})",
            status=raw.status,
        ) from e

    if not isinstance(payload, dict):
        raise ApiError(
            status_code or ErrorCode.UNKNOWN_ERROR,
            "Unexpected response shape",
            details=payload,
            status=raw.status,
        )

    if not raw.ok or payload.get("status") == "error":
        error = payload.get("error")
        if not isinstance(error, dict):
            error = {}
        raise ApiError(
            error.get("code") or status_code or ErrorCode.UNKNOWN_ERROR,
            error.get("message") or "An error occurred",
            details=error.get("details"),
            status=raw.status,
        )

    return payload.get("data")
