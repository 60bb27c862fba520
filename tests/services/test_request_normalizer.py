import pytest

from readerai.errors import ConfigurationError
from readerai.provider.registry import Provider, default_model
from readerai.schemas.chat import ChatRequest
from readerai.services.request_normalizer import (
    DEFAULT_SYSTEM_PROMPT,
    LOCAL_CLI_DISABLED_ERROR,
    MAX_API_KEY_LENGTH,
    MAX_CHAT_MESSAGES,
    MAX_CHAT_MESSAGE_LENGTH,
    ensure_provider_usable,
    normalize_chat_messages,
    normalize_chat_request,
    normalize_text,
)


def test_normalize_text_strips_nul_and_truncates():
    assert normalize_text("  a\x00b  ", 10) == "ab"
    assert normalize_text("abcdef", 3) == "abc"
    assert normalize_text(None, 3) == ""
    assert normalize_text(12, 5) == "12"


def test_chat_messages_keep_valid_recent_entries():
    payload = [
        {"role": "system", "content": "ignored"},
        {"role": "user", "content": "   "},
        "junk",
        {"role": "assistant", "content": 5},
    ] + [{"role": "user", "content": f"m{i}"} for i in range(30)]

    messages = normalize_chat_messages(payload)

    assert len(messages) == MAX_CHAT_MESSAGES
    assert messages[0].content == "m6"
    assert messages[-1].content == "m29"


def test_chat_message_content_is_capped():
    messages = normalize_chat_messages([{"role": "user", "content": "x" * (MAX_CHAT_MESSAGE_LENGTH + 50)}])
    assert len(messages[0].content) == MAX_CHAT_MESSAGE_LENGTH


def test_chat_request_defaults():
    request = normalize_chat_request(
        ChatRequest.model_validate(
            {"provider": "unknown", "model": " ", "apiKey": 42, "messages": [{"role": "user", "content": "hi"}]}
        )
    )

    assert request.provider is Provider.GATEWAY
    assert request.model == default_model(Provider.GATEWAY)
    assert request.api_key == ""
    assert request.system_prompt == DEFAULT_SYSTEM_PROMPT


def test_chat_request_keeps_supplied_fields():
    request = normalize_chat_request(
        ChatRequest.model_validate(
            {
                "provider": "anthropic",
                "model": "claude-x",
                "apiKey": "  " + "k" * (MAX_API_KEY_LENGTH + 10),
                "systemPrompt": "be brief",
                "messages": [{"role": "user", "content": "hi"}],
            }
        )
    )

    assert request.provider is Provider.ANTHROPIC
    assert request.model == "claude-x"
    assert len(request.api_key) == MAX_API_KEY_LENGTH
    assert request.system_prompt == "be brief"


def test_credentialed_provider_requires_key(make_settings):
    with pytest.raises(ConfigurationError) as exc_info:
        ensure_provider_usable(Provider.OPENAI, "", make_settings())
    assert str(exc_info.value) == "API key is required for openai"

    ensure_provider_usable(Provider.GATEWAY, "", make_settings())
    ensure_provider_usable(Provider.OPENAI, "sk", make_settings())


def test_local_providers_follow_environment(make_settings):
    ensure_provider_usable(Provider.CODEX, "", make_settings(environment="development"))

    with pytest.raises(ConfigurationError) as exc_info:
        ensure_provider_usable(Provider.CODEX, "", make_settings(environment="production"))
    assert str(exc_info.value) == LOCAL_CLI_DISABLED_ERROR

    ensure_provider_usable(
        Provider.CODEX, "", make_settings(environment="production", local_cli_override=True)
    )
