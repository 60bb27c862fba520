import json

import httpx
import pytest

from readerai.client.model_options import ModelOptionsClient
from readerai.provider.registry import Provider, fallback_models
from readerai.schemas.chat import AIConfig
from readerai.schemas.model import CatalogSource


def _config(**overrides) -> AIConfig:
    data = {"provider": Provider.OPENAI, "model": "gpt-4.1-mini", "api_key": "sk-test"}
    data.update(overrides)
    return AIConfig(**data)


@pytest.mark.asyncio
async def test_live_models_are_ranked_with_selection_first():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "models": [{"id": "o4-preview"}, {"id": "gpt-4.1"}, {"id": "gpt-4o"}],
                "source": "live",
            },
        )

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport, base_url="http://reader.test") as client:
        options = await ModelOptionsClient(client).load(_config(model="my-model"))

    assert seen["body"] == {"provider": "openai", "apiKey": "sk-test", "model": "my-model"}
    assert options.model_ids == ["my-model", "gpt-4.1", "gpt-4o", "o4-preview"]
    assert options.source is CatalogSource.LIVE
    assert options.error is None


@pytest.mark.asyncio
async def test_error_status_uses_fallback_with_server_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={"error": "Local CLI providers are available only in development environments."},
        )

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport, base_url="http://reader.test") as client:
        options = await ModelOptionsClient(client).load(_config(provider=Provider.GATEWAY, model=""))

    assert options.source is CatalogSource.FALLBACK
    assert options.error == "Local CLI providers are available only in development environments."
    assert set(options.model_ids) == set(fallback_models(Provider.GATEWAY))


@pytest.mark.asyncio
async def test_error_status_without_body_reports_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport, base_url="http://reader.test") as client:
        options = await ModelOptionsClient(client).load(_config())

    assert options.error == "Model fetch failed with status 503"
    assert options.model_ids == ["gpt-4.1", "gpt-4.1-mini", "gpt-4o-mini", "o4-mini"]


@pytest.mark.asyncio
async def test_transport_failure_uses_fallback():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport, base_url="http://reader.test") as client:
        options = await ModelOptionsClient(client).load(_config(model="custom"))

    assert options.source is CatalogSource.FALLBACK
    assert options.error == "connection refused"
    assert options.model_ids[0] == "custom"
    assert set(options.model_ids[1:]) == set(fallback_models(Provider.OPENAI))


@pytest.mark.asyncio
async def test_empty_live_list_falls_back_but_keeps_reported_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"models": [], "source": "fallback", "error": "Incorrect API key provided"},
        )

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport, base_url="http://reader.test") as client:
        options = await ModelOptionsClient(client).load(_config())

    assert options.error == "Incorrect API key provided"
    assert set(options.model_ids) == set(fallback_models(Provider.OPENAI))
