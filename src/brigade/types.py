import dataclasses
import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

# on_retry(attempt_number, error); must not raise
RetryCallback = Callable[[int, BaseException], None]


@dataclass(frozen=True)
class RequestConfig:
    params: Mapping[str, Any] | None = None
    headers: Mapping[str, str] | None = None
    skip_auth: bool = False
    # retries after the first attempt, so retries + 1 attempts in total
    retries: int = 3
    # seconds; base of the exponential backoff
    retry_delay: float = 1.0
    # seconds; applies to each attempt separately
    timeout: float = 30.0
    on_retry: RetryCallback | None = None

    def __post_init__(self):
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.retry_delay < 0:
            raise ValueError("retry_delay must be >= 0")
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")

    def with_overrides(self, **kwargs) -> "RequestConfig":
        unknown = set(kwargs) - {f.name for f in dataclasses.fields(self)}
        if unknown:
            raise TypeError(f"Unknown request option(s): {', '.join(sorted(unknown))}")
        return dataclasses.replace(self, **kwargs) if kwargs else self


@dataclass
class RetryState:
    attempt: int = 0
    last_error: BaseException | None = None
    elapsed_backoff: float = 0.0


@dataclass(frozen=True)
class TokenPair:
    token: str
    refresh_token: str


@dataclass
class RawResponse:
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300  # noqa: PLR2004

    def json(self) -> Any:
        return json.loads(self.body)


@dataclass(frozen=True)
class ClientSettings:
    base_url: str
    refresh_path: str = "/auth/refresh"
    timeout: float = 30.0
    retries: int = 3
    retry_delay: float = 1.0
    # Backoff: jitter added on top of the exponential term, and the hard ceiling
    max_jitter: float = 1.0
    max_delay: float = 30.0
    # Token lifetime handling (seconds)
    refresh_threshold: float = 300.0
    expiry_skew: float = 10.0

    def request_defaults(self) -> RequestConfig:
        return RequestConfig(
            retries=self.retries,
            retry_delay=self.retry_delay,
            timeout=self.timeout,
        )
