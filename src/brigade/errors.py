from typing import Any


class ErrorCode:
    NO_REFRESH_TOKEN = "NO_REFRESH_TOKEN"
    REFRESH_FAILED = "REFRESH_FAILED"
    TIMEOUT = "TIMEOUT"
    RATE_LIMIT = "RATE_LIMIT"
    SERVER_ERROR = "SERVER_ERROR"
    CLIENT_ERROR = "CLIENT_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


RETRYABLE_CODES = frozenset(
    {
        ErrorCode.NETWORK_ERROR,
        ErrorCode.TIMEOUT,
        ErrorCode.RATE_LIMIT,
        ErrorCode.SERVER_ERROR,
    }
)


class ApiError(Exception):
    """Single error type surfaced to callers.

    `code` is the machine-readable category callers branch on; `status` is the
    HTTP status when a response was received at all.
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Any = None,
        status: int | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details
        self.status = status

    def __repr__(self) -> str:
        return f"ApiError(code={self.code!r}, message={self.message!r}, status={self.status!r})"
