import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Union

from .backoff import DEFAULT_MAX_DELAY, DEFAULT_MAX_JITTER, delay_for
from .classifier import is_retryable, to_api_error
from .envelope import decode_response
from .errors import ApiError, ErrorCode
from .refresh import TokenRefreshCoordinator
from .types import RawResponse, RequestConfig, RetryState

# request_fn(headers) performs exactly one network call
RequestFn = Callable[[dict[str, str]], Awaitable[RawResponse]]


class RequestExecutor:
    """Runs one logical request: auth, per-attempt timeout, decode, retry loop.

    Attempts are strictly sequential. A failure is retried only when the
    classifier says so and attempts remain; otherwise it is raised as ApiError
    with the original exception chained as its cause.
    """

    def __init__(
        self,
        coordinator: Union[TokenRefreshCoordinator, None] = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        jitter: Union[Callable[[], float], None] = None,
        max_jitter: float = DEFAULT_MAX_JITTER,
        max_delay: float = DEFAULT_MAX_DELAY,
    ):
        self.coordinator = coordinator
        self._sleep = sleep
        self._jitter = jitter
        self._max_jitter = max_jitter
        self._max_delay = max_delay
        self._logger = logging.getLogger("brigade")

    async def _auth_headers(self, config: RequestConfig) -> dict[str, str]:
        if config.skip_auth or self.coordinator is None:
            return {}
        token = await self.coordinator.ensure_valid_token()
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    async def _attempt(
        self,
        request_fn: RequestFn,
        config: RequestConfig,
        base_headers: dict[str, str],
    ) -> Any:
        headers = {**base_headers, **(await self._auth_headers(config))}
        if config.headers:
            headers.update(config.headers)
        try:
            raw = await asyncio.wait_for(request_fn(headers), timeout=config.timeout)
        except asyncio.TimeoutError as e:
            raise ApiError(
                ErrorCode.TIMEOUT, f"Request timed out after {config.timeout}s"
            ) from e
        return decode_response(raw)

    async def execute(
        self,
        request_fn: RequestFn,
        config: Union[RequestConfig, None] = None,
        base_headers: Union[dict[str, str], None] = None,
    ) -> Any:
        config = config or RequestConfig()
        base_headers = base_headers or {}
        state = RetryState()

        while True:
            self._logger.debug(f"Attempt {state.attempt + 1}/{config.retries + 1}")
            try:
                return await self._attempt(request_fn, config, base_headers)
            except Exception as e:
                error = to_api_error(e)
                state.last_error = error
                if state.attempt >= config.retries or not is_retryable(e):
                    if error is e:
                        raise
                    raise error from e

            delay = delay_for(
                state.attempt,
                config.retry_delay,
                jitter=self._jitter,
                max_jitter=self._max_jitter,
                cap=self._max_delay,
            )
            self._logger.info(
                f"Retrying after {error.code} (attempt {state.attempt + 1} of "
                f"{config.retries + 1}); sleeping {delay:.2f}s"
            )
            if config.on_retry is not None:
                # not guarded: an exception here ends the retry sequence
                config.on_retry(state.attempt + 1, error)
            await self._sleep(delay)
            state.elapsed_backoff += delay
            state.attempt += 1
