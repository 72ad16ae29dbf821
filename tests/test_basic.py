import pytest

from brigade import ApiClient, ClientSettings, RequestConfig


def test_construct_from_url():
    api = ApiClient("https://api.example.com/v1/", retries=5)
    assert api.base_url == "https://api.example.com/v1"
    assert api.defaults.retries == 5  # noqa: PLR2004


def test_construct_from_settings_rejects_extra_kwargs():
    with pytest.raises(TypeError):
        ApiClient(ClientSettings(base_url="https://x"), retries=1)


def test_request_config_validation_and_overrides():
    cfg = RequestConfig()
    assert (cfg.retries, cfg.retry_delay, cfg.timeout) == (3, 1.0, 30.0)
    assert cfg.with_overrides(retries=0).retries == 0
    assert cfg.with_overrides() is cfg
    with pytest.raises(TypeError):
        cfg.with_overrides(retrys=1)
    with pytest.raises(ValueError):
        RequestConfig(retries=-1)
    with pytest.raises(ValueError):
        RequestConfig(timeout=0)


@pytest.mark.asyncio
async def test_async_context_closes_owned_transport():
    async with ApiClient("https://api.example.com") as api:
        api.transport._get_client()
        assert api.transport._internal_client is not None
    assert api.transport._internal_client is None
