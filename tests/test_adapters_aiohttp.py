import json
from unittest.mock import MagicMock

import aiohttp
import pytest

from brigade import AiohttpTransport, ApiClient, ApiError, ErrorCode


class FakeResponse:
    def __init__(self, status=200, payload=None, headers=None):
        self.status = status
        self.headers = headers or {"Content-Type": "application/json"}
        self._body = json.dumps(payload).encode()

    async def read(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


@pytest.mark.asyncio
async def test_aiohttp_transport_sends_json_and_params():
    session = FakeSession(FakeResponse(200, {"status": "success", "data": {"id": 3}}))
    transport = AiohttpTransport(session)
    api = ApiClient(
        "https://api.test", transport=transport, retry_delay=0.0, max_jitter=0.0
    )
    result = await api.post("/orders", {"table": 4}, params={"notify": True, "x": None})
    assert result == {"id": 3}

    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "https://api.test/orders")
    assert kwargs["json"] == {"table": 4}
    assert kwargs["params"] == {"notify": "true"}
    assert kwargs["headers"]["Content-Type"] == "application/json"
    await api.aclose()


@pytest.mark.asyncio
async def test_aiohttp_client_error_becomes_network_error_and_retries():
    session = FakeSession(
        aiohttp.ClientConnectionError("connection refused"),
        FakeResponse(200, {"status": "success", "data": "ok"}),
    )
    api = ApiClient(
        "https://api.test", transport=AiohttpTransport(session), retry_delay=0.0, max_jitter=0.0
    )
    assert await api.get("/health", retries=1) == "ok"
    assert len(session.calls) == 2  # noqa: PLR2004


@pytest.mark.asyncio
async def test_aiohttp_network_error_code():
    session = FakeSession(aiohttp.ClientConnectionError("down"))
    transport = AiohttpTransport(session)
    with pytest.raises(ApiError) as ei:
        await transport.send("GET", "https://api.test/x", headers={})
    assert ei.value.code == ErrorCode.NETWORK_ERROR


@pytest.mark.asyncio
async def test_aiohttp_upload_uses_form_data():
    session = FakeSession(FakeResponse(201, {"status": "success", "data": {"stored": True}}))
    transport = AiohttpTransport(session)
    raw = await transport.send(
        "POST",
        "https://api.test/uploads",
        headers={},
        files={"file": ("menu.pdf", b"%PDF", "application/pdf")},
    )
    assert raw.status == 201  # noqa: PLR2004
    _, _, kwargs = session.calls[0]
    assert isinstance(kwargs["data"], aiohttp.FormData)
    assert "json" not in kwargs


@pytest.mark.asyncio
async def test_owned_session_closed():
    transport = AiohttpTransport()
    transport.session = MagicMock()
    transport._own_session = True

    async def _close():
        return None

    transport.session.close = MagicMock(side_effect=_close)
    session = transport.session
    await transport.aclose()
    session.close.assert_called_once()
    assert transport.session is None
