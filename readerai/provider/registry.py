"""
Static provider metadata.

Seven providers are supported: the routing gateway, three credentialed
cloud APIs and three local CLI tools reached through the bridge daemon.
Everything here is a pure lookup; nothing touches the network.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class Provider(str, Enum):
    GATEWAY = "gateway"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    CLAUDE_CODE = "claude-code"
    CODEX = "codex"
    GEMINI_CLI = "gemini-cli"


DEFAULT_PROVIDER = Provider.GATEWAY

PROVIDER_LABELS: dict[Provider, str] = {
    Provider.GATEWAY: "Vercel AI Gateway",
    Provider.OPENAI: "OpenAI",
    Provider.ANTHROPIC: "Anthropic",
    Provider.GOOGLE: "Google Gemini",
    Provider.CLAUDE_CODE: "Claude Code CLI",
    Provider.CODEX: "Codex CLI",
    Provider.GEMINI_CLI: "Gemini CLI",
}

# Name of the CLI tool the bridge daemon should drive for each local provider.
LOCAL_TOOL_BY_PROVIDER: dict[Provider, str] = {
    Provider.CLAUDE_CODE: "claude",
    Provider.CODEX: "codex",
    Provider.GEMINI_CLI: "gemini",
}

LOCAL_PROVIDERS = frozenset(LOCAL_TOOL_BY_PROVIDER)

# Local providers expose a single synthetic model id ending in this suffix;
# the bridge then lets the CLI pick its own default model.
LOCAL_MODEL_SUFFIX = "-local"

FALLBACK_MODELS: dict[Provider, list[str]] = {
    Provider.GATEWAY: [
        "openai/gpt-4.1-mini",
        "anthropic/claude-sonnet-4-5",
        "google/gemini-2.5-flash",
    ],
    Provider.OPENAI: ["gpt-4.1-mini", "gpt-4.1", "gpt-4o-mini", "o4-mini"],
    Provider.ANTHROPIC: [
        "claude-sonnet-4-5-20250929",
        "claude-haiku-4-5-20251001",
        "claude-opus-4-6",
    ],
    Provider.GOOGLE: ["gemini-2.5-flash", "gemini-2.5-pro", "gemini-3-pro-preview"],
    Provider.CLAUDE_CODE: ["claude-code-local"],
    Provider.CODEX: ["codex-local"],
    Provider.GEMINI_CLI: ["gemini-cli-local"],
}

UNSTABLE_MODEL_TOKENS = ("preview", "beta", "alpha", "experimental", "exp", "nightly", "dev")


def normalize_provider(value: Any) -> Provider:
    """Map an arbitrary tag onto a provider; unknown tags become the gateway."""
    if isinstance(value, Provider):
        return value
    try:
        return Provider(value)
    except (TypeError, ValueError):
        return DEFAULT_PROVIDER


def normalize_available_provider(value: Any, allow_local_providers: bool) -> Provider:
    provider = normalize_provider(value)
    if not allow_local_providers and is_local_provider(provider):
        return DEFAULT_PROVIDER
    return provider


def is_local_provider(provider: Provider) -> bool:
    return provider in LOCAL_PROVIDERS


def requires_credential(provider: Provider) -> bool:
    """
    Direct cloud providers mandate an API key. The gateway accepts an
    optional one (a process-level key may stand in) and local CLI tools
    carry their own login.
    """
    return not is_local_provider(provider) and provider is not Provider.GATEWAY


def fallback_models(provider: Provider) -> list[str]:
    return list(FALLBACK_MODELS.get(provider) or FALLBACK_MODELS[DEFAULT_PROVIDER])


def default_model(provider: Provider) -> str:
    return fallback_models(provider)[0]


def provider_label(provider: Provider) -> str:
    return PROVIDER_LABELS.get(provider, provider.value)


def local_tool_name(provider: Provider) -> str:
    try:
        return LOCAL_TOOL_BY_PROVIDER[provider]
    except KeyError:
        raise ValueError(f"{provider.value} is not a local CLI provider") from None


def is_stable_model_id(model_id: str) -> bool:
    lower = model_id.lower()
    return not any(token in lower for token in UNSTABLE_MODEL_TOKENS)


def unique_model_ids(ids: list[str]) -> list[str]:
    """Trim, drop empties and de-duplicate while keeping first occurrence."""
    seen: dict[str, None] = {}
    for raw in ids:
        if not isinstance(raw, str):
            continue
        model_id = raw.strip()
        if model_id:
            seen.setdefault(model_id, None)
    return list(seen)


def prioritize_stable_model_ids(ids: list[str]) -> list[str]:
    """Stable ids first, then pre-release ones; alphabetical within each group."""
    return sorted(
        unique_model_ids(ids),
        key=lambda model_id: (not is_stable_model_id(model_id), model_id),
    )


def include_selected_model(selected_model: str | None, model_ids: list[str]) -> list[str]:
    if not selected_model or selected_model in model_ids:
        return list(model_ids)
    return [selected_model, *model_ids]


__all__ = [
    "DEFAULT_PROVIDER",
    "FALLBACK_MODELS",
    "LOCAL_MODEL_SUFFIX",
    "LOCAL_PROVIDERS",
    "LOCAL_TOOL_BY_PROVIDER",
    "PROVIDER_LABELS",
    "Provider",
    "default_model",
    "fallback_models",
    "include_selected_model",
    "is_local_provider",
    "is_stable_model_id",
    "local_tool_name",
    "normalize_available_provider",
    "normalize_provider",
    "prioritize_stable_model_ids",
    "provider_label",
    "requires_credential",
    "unique_model_ids",
]
