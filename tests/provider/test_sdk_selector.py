import pytest

from readerai.errors import ConfigurationError
from readerai.provider import sdk_selector
from readerai.provider.registry import Provider
from readerai.provider.sdk_selector import driver_for_provider, resolve_language_model
from readerai.schemas.chat import ChatMessage


def test_builtin_drivers_are_registered():
    assert sdk_selector.list_registered_sdk_vendors() == ["claude", "google", "openai"]
    assert driver_for_provider(Provider.ANTHROPIC).name == "claude"
    assert driver_for_provider(Provider.GATEWAY) is None


def test_gateway_uses_openai_driver_and_process_key(make_settings):
    cfg = make_settings(ai_gateway_api_key="env-key", ai_gateway_base_url="https://gw.test/v1/")
    handle = resolve_language_model(Provider.GATEWAY, "openai/gpt-4.1-mini", "", config=cfg)

    assert handle.driver.name == "openai"
    assert handle.api_key == "env-key"
    assert handle.base_url == "https://gw.test/v1"

    handle = resolve_language_model(Provider.GATEWAY, "openai/gpt-4.1-mini", "mine", config=cfg)
    assert handle.api_key == "mine"


def test_direct_providers_use_vendor_drivers(make_settings):
    cfg = make_settings()
    assert resolve_language_model(Provider.OPENAI, "gpt-4.1", "k", config=cfg).driver.name == "openai"
    assert resolve_language_model(Provider.ANTHROPIC, "claude-x", "k", config=cfg).driver.name == "claude"
    assert resolve_language_model(Provider.GOOGLE, "gemini-x", "k", config=cfg).base_url is None


def test_local_provider_has_no_sdk_handle(make_settings):
    with pytest.raises(ConfigurationError):
        resolve_language_model(Provider.CODEX, "codex-local", "", config=make_settings())


@pytest.mark.asyncio
async def test_handle_forwards_conversation_to_driver(monkeypatch, make_settings):
    calls = []

    async def generate_text(**kwargs):
        calls.append(kwargs)
        return "reply"

    async def stream_text(**kwargs):
        calls.append(kwargs)
        for piece in ("a", "b"):
            yield piece

    async def list_models(**kwargs):  # pragma: no cover - not used here
        return []

    monkeypatch.setitem(
        sdk_selector.SDK_DRIVERS,
        "claude",
        sdk_selector.SDKDriver(
            name="fake-claude",
            list_models=list_models,
            generate_text=generate_text,
            stream_text=stream_text,
        ),
    )

    handle = resolve_language_model(Provider.ANTHROPIC, "claude-x", "a-key", config=make_settings())
    messages = [ChatMessage.user("hi"), ChatMessage.assistant("hello")]

    assert await handle.generate(system="be brief", messages=messages) == "reply"
    assert [piece async for piece in handle.stream(system="", messages=messages)] == ["a", "b"]

    assert calls[0] == {
        "api_key": "a-key",
        "model_id": "claude-x",
        "system": "be brief",
        "messages": [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ],
        "base_url": None,
    }
    assert calls[1]["system"] == ""
