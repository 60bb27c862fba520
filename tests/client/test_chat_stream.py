import json

import httpx
import pytest

from readerai.client.api_client import build_api_client
from readerai.client.chat_stream import STREAM_START_ERROR, ChatStreamClient
from readerai.errors import UpstreamError
from readerai.provider.registry import Provider
from readerai.schemas.chat import ChatMessage, StreamRequest


def _request() -> StreamRequest:
    return StreamRequest(
        provider=Provider.OPENAI,
        model="gpt-4.1-mini",
        api_key="sk-test",
        system_prompt="sys",
        messages=[ChatMessage.user("hi")],
    )


@pytest.mark.asyncio
async def test_stream_yields_response_text():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, content=b"Hello world", headers={"Content-Type": "text/plain"})

    transport = httpx.MockTransport(handler)
    async with build_api_client("http://reader.test/", auth_token="tok", transport=transport) as client:
        chunks = [chunk async for chunk in ChatStreamClient(client).stream(_request())]

    assert "".join(chunks) == "Hello world"
    assert seen["path"] == "/api/ai/chat"
    assert seen["auth"] == "Bearer tok"
    assert seen["body"] == {
        "provider": "openai",
        "model": "gpt-4.1-mini",
        "apiKey": "sk-test",
        "messages": [{"role": "user", "content": "hi"}],
        "systemPrompt": "sys",
    }


@pytest.mark.asyncio
async def test_stream_raises_server_error_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "API key is required for openai"})

    transport = httpx.MockTransport(handler)
    async with build_api_client("http://reader.test", transport=transport) as client:
        with pytest.raises(UpstreamError) as exc_info:
            async for _ in ChatStreamClient(client).stream(_request()):
                pass

    assert str(exc_info.value) == "API key is required for openai"
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_stream_falls_back_to_generic_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>bad gateway</html>")

    transport = httpx.MockTransport(handler)
    async with build_api_client("http://reader.test", transport=transport) as client:
        with pytest.raises(UpstreamError) as exc_info:
            async for _ in ChatStreamClient(client)(_request()):
                pass

    assert str(exc_info.value) == STREAM_START_ERROR
