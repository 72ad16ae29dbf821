from .adapters import AiohttpTransport, HttpxTransport
from .backoff import delay_for
from .classifier import code_for_status, is_retryable, to_api_error
from .client import ApiClient
from .env import load_settings_from_env
from .envelope import decode_response
from .errors import RETRYABLE_CODES, ApiError, ErrorCode
from .executor import RequestExecutor
from .refresh import TokenRefreshCoordinator
from .tokens import (
    FileTokenStore,
    MemoryTokenStore,
    TokenStore,
    decode_token,
    is_token_expired,
    seconds_until_expiration,
    token_expiration,
    user_from_token,
)
from .types import ClientSettings, RawResponse, RequestConfig, RetryState, TokenPair

__all__ = [
    "ApiClient",
    "ApiError",
    "ErrorCode",
    "RETRYABLE_CODES",
    "ClientSettings",
    "RequestConfig",
    "RetryState",
    "TokenPair",
    "RawResponse",
    "RequestExecutor",
    "TokenRefreshCoordinator",
    "TokenStore",
    "MemoryTokenStore",
    "FileTokenStore",
    "HttpxTransport",
    "AiohttpTransport",
    "code_for_status",
    "is_retryable",
    "to_api_error",
    "delay_for",
    "decode_response",
    "decode_token",
    "token_expiration",
    "seconds_until_expiration",
    "is_token_expired",
    "user_from_token",
    "load_settings_from_env",
]
