import contextlib
from collections.abc import Mapping
from typing import Any, Union

import httpx

from .errors import ApiError, ErrorCode
from .types import RawResponse

# files maps a form field to (filename, content, content_type | None)
Files = Mapping[str, tuple[str, Any, Union[str, None]]]


def _clean_params(params: Union[Mapping[str, Any], None]) -> dict[str, Any]:
    if not params:
        return {}
    return {k: v for k, v in params.items() if v is not None}


# ---------- httpx (async) ----------
class HttpxTransport:
    """Send one request over an httpx.AsyncClient.

    The client is created lazily and closed on exit unless the caller passed
    their own. Timeouts are enforced by the executor, so the client's own
    timeout is disabled unless given explicitly.
    """

    def __init__(self, client: Union[httpx.AsyncClient, None] = None, timeout=None):
        self.client = client
        self._timeout = timeout
        self._internal_client: Union[httpx.AsyncClient, None] = None

    def _get_client(self) -> httpx.AsyncClient:
        client = self.client or self._internal_client
        if client is None:
            self._internal_client = client = httpx.AsyncClient(timeout=self._timeout)
        return client

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        params: Union[Mapping[str, Any], None] = None,
        json: Any = None,
        files: Union[Files, None] = None,
    ) -> RawResponse:
        client = self._get_client()
        kwargs: dict[str, Any] = {"headers": dict(headers), "params": _clean_params(params)}
        if files is not None:
            kwargs["files"] = {
                field: (name, content, ctype) if ctype else (name, content)
                for field, (name, content, ctype) in files.items()
            }
        elif json is not None:
            kwargs["json"] = json
        resp = await client.request(method, url, **kwargs)
        return RawResponse(status=resp.status_code, headers=dict(resp.headers), body=resp.content)

    async def aclose(self) -> None:
        if self._internal_client is not None:
            with contextlib.suppress(Exception):
                await self._internal_client.aclose()
            self._internal_client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False


# ---------- aiohttp (async) ----------
class AiohttpTransport:
    """Same contract as HttpxTransport over an aiohttp.ClientSession.

    aiohttp connection failures are reported as NETWORK_ERROR ApiErrors.
    """

    def __init__(self, session=None):
        self.session = session
        self._own_session = False

    def _get_session(self):
        if self.session is None:
            import aiohttp  # noqa: PLC0415

            self.session = aiohttp.ClientSession()
            self._own_session = True
        return self.session

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        params: Union[Mapping[str, Any], None] = None,
        json: Any = None,
        files: Union[Files, None] = None,
    ) -> RawResponse:
        import aiohttp  # noqa: PLC0415

        session = self._get_session()
        # aiohttp only accepts str/int/float query values
        query = {
            k: (str(v).lower() if isinstance(v, bool) else v)
            for k, v in _clean_params(params).items()
        }
        kwargs: dict[str, Any] = {"headers": dict(headers), "params": query}
        if files is not None:
            form = aiohttp.FormData()
            for field, (name, content, ctype) in files.items():
                form.add_field(field, content, filename=name, content_type=ctype)
            kwargs["data"] = form
        elif json is not None:
            kwargs["json"] = json
        try:
            async with session.request(method, url, **kwargs) as resp:
                body = await resp.read()
                return RawResponse(status=resp.status, headers=dict(resp.headers), body=body)
        except aiohttp.ClientError as e:
            raise ApiError(ErrorCode.NETWORK_ERROR, str(e) or "Network error") from e

    async def aclose(self) -> None:
        if self._own_session and self.session is not None:
            await self.session.close()
            self.session = None
            self._own_session = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False
