from __future__ import annotations

import json
from enum import Enum
from typing import Any, Sequence

from pydantic import BaseModel, ConfigDict, Field

from readerai.provider.registry import (
    DEFAULT_PROVIDER,
    Provider,
    default_model,
    is_local_provider,
    normalize_available_provider,
)


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """
    One turn of a document chat. Messages are never mutated; the
    in-flight assistant reply is replaced by a fresh instance per chunk.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    role: ChatRole
    content: str = ""

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role=ChatRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "ChatMessage":
        return cls(role=ChatRole.ASSISTANT, content=content)

    def to_payload(self) -> dict[str, str]:
        return {"role": str(self.role), "content": self.content}


def serialize_messages(messages: Sequence[ChatMessage]) -> str:
    """Signature used to compare histories; only role and content matter."""
    return json.dumps(
        [[str(message.role), message.content] for message in messages],
        ensure_ascii=False,
    )


def messages_payload(messages: Sequence[ChatMessage]) -> list[dict[str, str]]:
    return [message.to_payload() for message in messages]


def parse_messages(payload: Any) -> list[ChatMessage]:
    """Lenient parse of a persisted history; invalid entries are skipped."""
    if not isinstance(payload, list):
        return []
    parsed: list[ChatMessage] = []
    for item in payload:
        if isinstance(item, ChatMessage):
            parsed.append(item)
            continue
        if not isinstance(item, dict):
            continue
        role = item.get("role")
        content = item.get("content")
        if role not in (ChatRole.USER.value, ChatRole.ASSISTANT.value):
            continue
        if not isinstance(content, str):
            continue
        parsed.append(ChatMessage(role=role, content=content))
    return parsed


class AIConfig(BaseModel):
    """
    The user's assistant configuration. Copies are produced on every
    change so a session can persist exactly what it holds.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    provider: Provider = DEFAULT_PROVIDER
    model: str = Field(default_factory=lambda: default_model(DEFAULT_PROVIDER))
    api_key: str = Field("", alias="apiKey")

    @property
    def is_ready(self) -> bool:
        """Local tools and the gateway always are; direct APIs need a key."""
        if is_local_provider(self.provider) or self.provider is Provider.GATEWAY:
            return True
        return bool(self.api_key.strip())

    def with_provider(self, provider: Provider) -> "AIConfig":
        return self.model_copy(update={"provider": provider, "model": default_model(provider)})

    def with_model(self, model: str) -> "AIConfig":
        return self.model_copy(update={"model": model.strip() or default_model(self.provider)})

    def with_api_key(self, api_key: str) -> "AIConfig":
        return self.model_copy(update={"api_key": api_key})

    @classmethod
    def from_stored(cls, raw: Any, *, allow_local_providers: bool) -> "AIConfig":
        """Rebuild a config from loosely-typed stored data."""
        if not isinstance(raw, dict):
            return cls()
        provider = normalize_available_provider(raw.get("provider"), allow_local_providers)
        model = raw.get("model")
        api_key = raw.get("apiKey")
        return cls(
            provider=provider,
            model=model.strip() if isinstance(model, str) and model.strip() else default_model(provider),
            api_key=api_key if isinstance(api_key, str) else "",
        )

    def to_stored(self) -> dict[str, str]:
        return {"provider": self.provider.value, "model": self.model, "apiKey": self.api_key}


class ChatRequest(BaseModel):
    """
    Raw body of the streaming chat endpoint. Fields are loosely typed on
    purpose; normalisation happens in services.request_normalizer.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    provider: Any = None
    model: Any = None
    api_key: Any = Field(None, alias="apiKey")
    system_prompt: Any = Field(None, alias="systemPrompt")
    messages: Any = None


class StreamRequest(BaseModel):
    """Normalised chat request handed to a provider stream."""

    provider: Provider
    model: str
    api_key: str = ""
    system_prompt: str
    messages: list[ChatMessage]

    def to_body(self) -> dict[str, Any]:
        return {
            "provider": self.provider.value,
            "model": self.model,
            "apiKey": self.api_key,
            "messages": messages_payload(self.messages),
            "systemPrompt": self.system_prompt,
        }
