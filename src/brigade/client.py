import asyncio
import contextlib
import logging
import os
from typing import Any, BinaryIO, Union

from .adapters import HttpxTransport
from .env import load_settings_from_env
from .envelope import decode_response
from .errors import ApiError, ErrorCode
from .executor import RequestExecutor
from .refresh import TokenRefreshCoordinator
from .tokens import MemoryTokenStore, TokenStore, user_from_token
from .types import ClientSettings, RequestConfig, TokenPair

JSON_HEADERS = {"Content-Type": "application/json"}


class ApiClient:
    """Async client for the ordering API.

    Every verb goes through the same pipeline: bearer auth with automatic
    refresh, per-attempt timeout, envelope decoding and retry with backoff.
    Calls return the envelope's `data` or raise ApiError.

    Usage:
        async with ApiClient("https://api.example.com/v1") as api:
            menu = await api.get("/menus", params={"active": True})
            order = await api.post("/orders", {"items": [...]}, retries=1)
    """

    def __init__(
        self,
        settings: Union[ClientSettings, str],
        *,
        token_store: Union[TokenStore, None] = None,
        transport=None,
        coordinator: Union[TokenRefreshCoordinator, None] = None,
        executor: Union[RequestExecutor, None] = None,
        log_level: Union[int, None] = None,
        **kwargs,
    ):
        """Initialize an ApiClient.

        Args:
            settings (ClientSettings | str): settings object, or a base URL
            token_store (TokenStore | None): defaults to an empty MemoryTokenStore
            transport: object with an async `send(...)`; defaults to HttpxTransport
            coordinator (TokenRefreshCoordinator | None): share one across clients
                to share the refresh slot; a passed-in coordinator is not closed by aclose()
            executor (RequestExecutor | None): custom executor (e.g. injected sleep);
                gets this client's coordinator if it has none
            log_level (int | None): level for the "brigade" logger
            kwargs: ClientSettings fields, used when settings is a base URL
        """
        if isinstance(settings, str):
            settings = ClientSettings(base_url=settings, **kwargs)
        elif kwargs:
            raise TypeError("Pass either a ClientSettings object or keyword settings, not both")
        self.settings = settings
        self.base_url = settings.base_url.rstrip("/")
        self.token_store = token_store or MemoryTokenStore(
            refresh_threshold=settings.refresh_threshold,
            expiry_skew=settings.expiry_skew,
        )
        self._own_transport = transport is None
        self.transport = transport or HttpxTransport()
        self._own_coordinator = coordinator is None
        self.coordinator = coordinator or TokenRefreshCoordinator(
            self.token_store, self._refresh_tokens
        )
        self.executor = executor or RequestExecutor(
            self.coordinator,
            max_jitter=settings.max_jitter,
            max_delay=settings.max_delay,
        )
        if self.executor.coordinator is None:
            self.executor.coordinator = self.coordinator
        self.defaults = settings.request_defaults()
        self._logger = logging.getLogger("brigade")
        if log_level is not None:
            with contextlib.suppress(Exception):
                self._logger.setLevel(log_level)

    @classmethod
    def from_env(
        cls,
        prefix: str = "BRIGADE_",
        env_path: Union[str, None] = None,
        **kwargs,
    ):
        """Create a client from BRIGADE_* environment variables (see load_settings_from_env)."""
        return cls(load_settings_from_env(prefix=prefix, env_path=env_path), **kwargs)

    # ---------- lifecycle ----------
    async def aclose(self) -> None:
        if self._own_coordinator:
            await self.coordinator.aclose()
        if self._own_transport:
            await self.transport.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False

    # ---------- tokens ----------
    def set_tokens(self, token: str, refresh_token: str) -> None:
        self.token_store.set_tokens(token, refresh_token)

    def clear_tokens(self) -> None:
        self.token_store.clear()

    def current_user(self) -> Union[dict[str, Any], None]:
        token = self.token_store.get_access_token()
        return user_from_token(token) if token else None

    async def _refresh_tokens(self, refresh_token: str) -> TokenPair:
        # Single call, never retried; the coordinator turns failures into REFRESH_FAILED.
        raw = await asyncio.wait_for(
            self.transport.send(
                "POST",
                self.build_url(self.settings.refresh_path),
                headers={**JSON_HEADERS, "Authorization": f"Bearer {refresh_token}"},
            ),
            timeout=self.settings.timeout,
        )
        data = decode_response(raw)
        if not isinstance(data, dict) or not data.get("token") or not data.get("refreshToken"):
            raise ApiError(
                ErrorCode.UNKNOWN_ERROR,
                "Refresh response is missing token data",
                status=raw.status,
            )
        return TokenPair(token=data["token"], refresh_token=data["refreshToken"])

    # ---------- request pipeline ----------
    def build_url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _resolve_config(self, config: Union[RequestConfig, None], overrides) -> RequestConfig:
        return (config or self.defaults).with_overrides(**overrides)

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        files=None,
        config: Union[RequestConfig, None] = None,
        **overrides,
    ) -> Any:
        cfg = self._resolve_config(config, overrides)
        url = self.build_url(path)
        method = method.upper()
        # multipart: leave Content-Type to the transport so it can set the boundary
        base_headers = {} if files is not None else dict(JSON_HEADERS)

        async def _send(headers: dict[str, str]):
            return await self.transport.send(
                method, url, headers=headers, params=cfg.params, json=body, files=files
            )

        self._logger.debug(f"{method} {url}")
        return await self.executor.execute(_send, cfg, base_headers)

    async def get(self, path: str, config: Union[RequestConfig, None] = None, **overrides):
        return await self.request("GET", path, config=config, **overrides)

    async def post(
        self, path: str, body: Any = None, config: Union[RequestConfig, None] = None, **overrides
    ):
        return await self.request("POST", path, body=body, config=config, **overrides)

    async def put(
        self, path: str, body: Any = None, config: Union[RequestConfig, None] = None, **overrides
    ):
        return await self.request("PUT", path, body=body, config=config, **overrides)

    async def patch(
        self, path: str, body: Any = None, config: Union[RequestConfig, None] = None, **overrides
    ):
        return await self.request("PATCH", path, body=body, config=config, **overrides)

    async def delete(self, path: str, config: Union[RequestConfig, None] = None, **overrides):
        return await self.request("DELETE", path, config=config, **overrides)

    async def upload(
        self,
        path: str,
        file: Union[bytes, BinaryIO],
        *,
        filename: Union[str, None] = None,
        content_type: Union[str, None] = None,
        config: Union[RequestConfig, None] = None,
        **overrides,
    ):
        """POST `file` as multipart form data under the field name `file`.

        File objects are read once up front so every retry sends the same bytes.
        """
        if isinstance(file, (bytes, bytearray)):
            content = bytes(file)
        else:
            content = file.read()
            if filename is None:
                name = getattr(file, "name", None)
                filename = os.path.basename(name) if isinstance(name, str) else None
        files = {"file": (filename or "upload", content, content_type)}
        return await self.request("POST", path, files=files, config=config, **overrides)
