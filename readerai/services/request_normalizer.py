"""
Normalisation of loosely-typed AI request bodies.

Clients send whatever they have stored; every field is coerced here into
the bounded shapes the provider layer expects.
"""

from __future__ import annotations

from typing import Any

from readerai.errors import ConfigurationError
from readerai.provider.registry import (
    Provider,
    default_model,
    is_local_provider,
    normalize_provider,
    requires_credential,
)
from readerai.schemas.chat import ChatMessage, ChatRequest, ChatRole, StreamRequest
from readerai.settings import Settings

MAX_API_KEY_LENGTH = 512
MAX_MODEL_ID_LENGTH = 180
MAX_CHAT_MESSAGES = 24
MAX_CHAT_MESSAGE_LENGTH = 10_000
MAX_SYSTEM_PROMPT_LENGTH = 8_000

DEFAULT_SYSTEM_PROMPT = (
    "You are an AI reading assistant helping users understand saved web articles and notes."
)

LOCAL_CLI_DISABLED_ERROR = "Local CLI providers are available only in development environments."


def normalize_text(value: Any, max_length: int) -> str:
    """Stringify, drop NUL characters, trim and truncate."""
    text = "" if value is None else str(value)
    return text.replace("\x00", "").strip()[:max_length]


def normalize_api_key(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()[:MAX_API_KEY_LENGTH]


def normalize_model(value: Any, provider: Provider) -> str:
    return normalize_text(value, MAX_MODEL_ID_LENGTH) or default_model(provider)


def normalize_chat_messages(payload: Any) -> list[ChatMessage]:
    """
    Keep user/assistant entries with non-empty content, most recent
    MAX_CHAT_MESSAGES only.
    """
    if not isinstance(payload, list):
        return []

    messages: list[ChatMessage] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        role = item.get("role")
        if role not in (ChatRole.USER.value, ChatRole.ASSISTANT.value):
            continue
        content = normalize_text(item.get("content"), MAX_CHAT_MESSAGE_LENGTH)
        if not content:
            continue
        messages.append(ChatMessage(role=role, content=content))
    return messages[-MAX_CHAT_MESSAGES:]


def normalize_chat_request(body: ChatRequest) -> StreamRequest:
    provider = normalize_provider(body.provider)
    return StreamRequest(
        provider=provider,
        model=normalize_model(body.model, provider),
        api_key=normalize_api_key(body.api_key),
        system_prompt=normalize_text(body.system_prompt, MAX_SYSTEM_PROMPT_LENGTH)
        or DEFAULT_SYSTEM_PROMPT,
        messages=normalize_chat_messages(body.messages),
    )


def ensure_provider_usable(provider: Provider, api_key: str, cfg: Settings) -> None:
    """
    Raise ConfigurationError when the provider cannot serve this request:
    a local tool while local CLI access is disabled, or a direct cloud
    provider without a credential.
    """
    if is_local_provider(provider) and not cfg.enable_local_cli:
        raise ConfigurationError(LOCAL_CLI_DISABLED_ERROR)
    if requires_credential(provider) and not api_key:
        raise ConfigurationError(f"API key is required for {provider.value}")


__all__ = [
    "DEFAULT_SYSTEM_PROMPT",
    "LOCAL_CLI_DISABLED_ERROR",
    "MAX_API_KEY_LENGTH",
    "MAX_CHAT_MESSAGES",
    "MAX_CHAT_MESSAGE_LENGTH",
    "MAX_SYSTEM_PROMPT_LENGTH",
    "ensure_provider_usable",
    "normalize_api_key",
    "normalize_chat_messages",
    "normalize_chat_request",
    "normalize_model",
    "normalize_text",
]
