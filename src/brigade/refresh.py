import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Union

from .errors import ApiError, ErrorCode
from .tokens import TokenStore
from .types import TokenPair

# refresh_fn(refresh_token) performs the refresh call and returns the new pair
RefreshFn = Callable[[str], Awaitable[TokenPair]]


class TokenRefreshCoordinator:
    """Keeps the access token usable and guarantees a single in-flight refresh.

    The pending refresh lives in one slot on this instance (`_refreshing` plus
    `_pending`). Concurrent callers that need a refresh while one is running
    await the same task and see the same outcome.
    """

    def __init__(self, store: TokenStore, refresh_fn: RefreshFn):
        self.store = store
        self.refresh_fn = refresh_fn
        self._refreshing = False
        self._pending: Union[asyncio.Task, None] = None
        self._background: set[asyncio.Task] = set()
        self._logger = logging.getLogger("brigade")

    @property
    def is_refreshing(self) -> bool:
        return self._refreshing

    async def ensure_valid_token(self) -> Union[str, None]:
        token = self.store.get_access_token()
        if not token:
            return None

        if self.store.is_expired(token):
            try:
                return await self.refresh()
            except ApiError as e:
                # Tokens are already cleared; carry on unauthenticated and let
                # the server answer with 401.
                self._logger.warning(f"Token refresh failed ({e.code}); continuing without auth")
                return None

        if self.store.should_refresh(token):
            self.refresh_in_background()
        return token

    def _start_or_join(self) -> asyncio.Task:
        # Check and claim the slot in one synchronous step, before any await.
        if not self._refreshing or self._pending is None:
            self._refreshing = True
            self._pending = asyncio.ensure_future(self._do_refresh())
        return self._pending

    async def refresh(self) -> str:
        """Refresh the token pair, joining an in-flight refresh if there is one."""
        # shield: a caller timing out must not cancel the shared refresh
        return await asyncio.shield(self._start_or_join())

    def refresh_in_background(self) -> asyncio.Task:
        """Start (or join) a refresh without waiting for it.

        Failures are logged and dropped; the caller keeps using its current
        token until it actually expires.
        """
        task = self._start_or_join()
        if task not in self._background:
            self._background.add(task)
            task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.warning(f"Background token refresh failed: {exc}")

    async def _do_refresh(self) -> str:
        try:
            refresh_token = self.store.get_refresh_token()
            if not refresh_token:
                self.store.clear()
                raise ApiError(ErrorCode.NO_REFRESH_TOKEN, "No refresh token available")
            self._logger.debug("Refreshing access token")
            try:
                pair = await self.refresh_fn(refresh_token)
            except Exception as e:
                self.store.clear()
                details = {"code": e.code, "status": e.status} if isinstance(e, ApiError) else None
                raise ApiError(
                    ErrorCode.REFRESH_FAILED,
                    f"Token refresh failed: {e}",
                    details=details,
                ) from e
            self.store.set_tokens(pair.token, pair.refresh_token)
            self._logger.info("Access token refreshed")
            return pair.token
        finally:
            self._refreshing = False
            self._pending = None

    async def aclose(self) -> None:
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        self._background.clear()
        if self._pending is not None:
            self._pending.cancel()
            await asyncio.gather(self._pending, return_exceptions=True)
        self._refreshing = False
        self._pending = None
