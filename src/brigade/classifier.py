import asyncio

import httpx

from .errors import RETRYABLE_CODES, ApiError, ErrorCode

# Low-level failures where no usable response arrived
_TIMEOUT_ERRORS = (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)
_TRANSPORT_ERRORS = (httpx.TransportError, ConnectionError, OSError)


def code_for_status(status: int | None) -> str | None:
    """Map an HTTP status to an error category, or None for non-error statuses."""
    if status is None:
        return None
    if status >= 500:  # noqa: PLR2004
        return ErrorCode.SERVER_ERROR
    if status == 429:  # noqa: PLR2004
        return ErrorCode.RATE_LIMIT
    if status == 408:  # noqa: PLR2004
        return ErrorCode.TIMEOUT
    if 400 <= status < 500:  # noqa: PLR2004
        return ErrorCode.CLIENT_ERROR
    return None


def is_retryable(error: BaseException) -> bool:
    """Decide whether another attempt could succeed without caller intervention.

    Evaluated per failure; the verdict depends only on the error object.
    """
    if isinstance(error, ApiError):
        if error.code in RETRYABLE_CODES:
            return True
        return code_for_status(error.status) in RETRYABLE_CODES
    return isinstance(error, _TIMEOUT_ERRORS + _TRANSPORT_ERRORS)


def to_api_error(error: BaseException) -> ApiError:
    """Normalize any failure into an ApiError."""
    if isinstance(error, ApiError):
        return error
    # httpx.TimeoutException is also a TransportError, so timeouts go first
    if isinstance(error, _TIMEOUT_ERRORS):
        return ApiError(ErrorCode.TIMEOUT, str(error) or "Request timed out")
    if isinstance(error, _TRANSPORT_ERRORS):
        return ApiError(ErrorCode.NETWORK_ERROR, str(error) or "Network error")
    return ApiError(ErrorCode.UNKNOWN_ERROR, str(error) or type(error).__name__)
