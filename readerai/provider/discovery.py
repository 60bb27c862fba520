"""
Model catalog discovery.

For the selected provider we call its model listing (the gateway's
`/models` endpoint over httpx, or the vendor SDK for direct providers),
reduce the response to chat-capable identifiers and rank them. When live
discovery fails or yields nothing the static fallback list is used and
the failure reason is reported alongside it; discovery never raises to
the caller.
"""

from __future__ import annotations

from typing import Any, Iterable

import httpx

from readerai.errors import UpstreamError, format_upstream_failure
from readerai.logging_config import logger
from readerai.provider.registry import (
    Provider,
    fallback_models,
    include_selected_model,
    is_local_provider,
    is_stable_model_id,
    prioritize_stable_model_ids,
    unique_model_ids,
)
from readerai.provider.sdk_selector import driver_for_provider, normalize_base_url
from readerai.schemas.model import CatalogSource, ModelOption, ModelsResponse
from readerai.settings import Settings, settings as default_settings

# Upper bound on listing entries scanned per discovery call.
MAX_SCANNED_MODELS = 300

EMPTY_CATALOG_ERROR = "No models returned from provider catalog."

_OPENAI_CHAT_PREFIXES = ("o1", "o3", "o4")
_OPENAI_NON_CHAT_TOKENS = (
    "embedding",
    "whisper",
    "tts",
    "transcribe",
    "moderation",
    "image",
    "audio",
)


def filter_openai_chat_models(ids: list[str]) -> list[str]:
    """
    Keep ids that look like chat models. When nothing survives the
    filter the unfiltered list is returned instead.
    """
    filtered = []
    for model_id in ids:
        lower = model_id.lower()
        looks_like_chat = "gpt" in lower or lower.startswith(_OPENAI_CHAT_PREFIXES)
        not_chat = any(token in lower for token in _OPENAI_NON_CHAT_TOKENS)
        if looks_like_chat and not not_chat:
            filtered.append(model_id)
    return filtered or list(ids)


def _entry_id(raw_model: dict[str, Any]) -> str | None:
    model_id = raw_model.get("id") or raw_model.get("model_id")
    return model_id if isinstance(model_id, str) else None


def _gateway_language_ids(raw_models: Iterable[Any]) -> list[str]:
    ids: list[str] = []
    for raw in raw_models:
        if not isinstance(raw, dict):
            continue
        model_type = raw.get("type") or raw.get("modelType") or raw.get("model_type")
        if model_type and model_type != "language":
            continue
        model_id = _entry_id(raw)
        if model_id:
            ids.append(model_id)
    return unique_model_ids(ids)


def _google_generation_ids(raw_models: Iterable[Any]) -> list[str]:
    ids: list[str] = []
    for raw in raw_models:
        if not isinstance(raw, dict):
            continue
        name = raw.get("name")
        if not isinstance(name, str):
            continue
        name = name.removeprefix("models/").strip()
        actions = raw.get("supported_actions") or raw.get("supportedActions") or []
        if not isinstance(actions, list):
            actions = []
        is_generation_model = not actions or "generateContent" in actions
        if name and is_generation_model and "gemini" in name.lower():
            ids.append(name)
    return unique_model_ids(ids)


async def fetch_gateway_model_ids(
    client: httpx.AsyncClient,
    api_key: str,
    *,
    config: Settings | None = None,
) -> list[str]:
    """
    Read the routing gateway's catalog and keep language models only.
    """
    cfg = config or default_settings
    base = normalize_base_url(cfg.ai_gateway_base_url) or ""
    url = f"{base}/models"

    headers: dict[str, str] = {"Accept": "application/json"}
    gateway_key = api_key or cfg.ai_gateway_api_key
    if gateway_key:
        headers["Authorization"] = f"Bearer {gateway_key}"

    logger.info("Fetching models from gateway at %s", url)

    try:
        resp = await client.get(url, headers=headers)
    except httpx.HTTPError as exc:
        raise UpstreamError(f"Gateway catalog request failed: {exc}") from exc

    if resp.status_code >= 400:
        raise UpstreamError(
            format_upstream_failure(resp.status_code, resp.text),
            status_code=resp.status_code,
            text=resp.text,
        )

    try:
        payload = resp.json()
    except ValueError as exc:
        raise UpstreamError(
            "Gateway catalog returned invalid JSON", status_code=resp.status_code
        ) from exc

    raw_models: list[Any] = []
    if isinstance(payload, dict):
        for key in ("data", "models"):
            if isinstance(payload.get(key), list):
                raw_models = payload[key]
                break
    elif isinstance(payload, list):
        raw_models = payload

    return _gateway_language_ids(raw_models[:MAX_SCANNED_MODELS])


async def list_live_model_ids(
    provider: Provider,
    api_key: str,
    *,
    client: httpx.AsyncClient,
    config: Settings | None = None,
) -> list[str]:
    """
    Live model ids for one provider, unranked. Local providers have no
    live catalog and return an empty list. Raises UpstreamError on
    transport or vendor failures.
    """
    if is_local_provider(provider):
        return []

    if provider is Provider.GATEWAY:
        return await fetch_gateway_model_ids(client, api_key, config=config)

    driver = driver_for_provider(provider)
    if driver is None:
        raise UpstreamError(f"No model listing available for {provider.value}")

    raw_models = await driver.list_models(
        api_key=api_key, base_url=None, limit=MAX_SCANNED_MODELS
    )

    if provider is Provider.GOOGLE:
        return _google_generation_ids(raw_models)

    ids = unique_model_ids(
        [_entry_id(raw) or "" for raw in raw_models if isinstance(raw, dict)]
    )
    if provider is Provider.OPENAI:
        return filter_openai_chat_models(ids)
    # Anthropic.
    return [model_id for model_id in ids if "claude" in model_id.lower()]


def build_model_options(
    provider: Provider,
    ids: list[str],
    source: CatalogSource,
    *,
    selected_model: str | None = None,
) -> list[ModelOption]:
    """
    Rank ids (stable before pre-release, alphabetical within each group)
    and prepend the selected model when it is missing.
    """
    ranked = include_selected_model(selected_model, prioritize_stable_model_ids(ids))
    return [
        ModelOption(
            id=model_id,
            name=model_id,
            provider=provider.value,
            source=source,
            is_stable=is_stable_model_id(model_id),
        )
        for model_id in ranked
    ]


def fallback_catalog(
    provider: Provider,
    error: str | None = None,
    *,
    selected_model: str | None = None,
) -> ModelsResponse:
    return ModelsResponse(
        models=build_model_options(
            provider,
            fallback_models(provider),
            CatalogSource.FALLBACK,
            selected_model=selected_model,
        ),
        source=CatalogSource.FALLBACK,
        error=error,
    )


async def resolve_model_catalog(
    provider: Provider,
    api_key: str,
    *,
    client: httpx.AsyncClient,
    selected_model: str | None = None,
    config: Settings | None = None,
) -> ModelsResponse:
    """
    Live catalog when available, otherwise the fallback list plus the
    reason live discovery did not produce one.
    """
    if is_local_provider(provider):
        return fallback_catalog(provider, selected_model=selected_model)

    try:
        ids = await list_live_model_ids(provider, api_key, client=client, config=config)
    except Exception as exc:
        logger.warning(
            "Provider %s: failed to load models from upstream (%s); using %d fallback models",
            provider.value,
            exc,
            len(fallback_models(provider)),
        )
        return fallback_catalog(provider, str(exc), selected_model=selected_model)

    if not ids:
        logger.info("Provider %s: live catalog empty, using fallback models", provider.value)
        return fallback_catalog(provider, EMPTY_CATALOG_ERROR, selected_model=selected_model)

    logger.info("Discovered %d models for provider %s", len(ids), provider.value)
    return ModelsResponse(
        models=build_model_options(
            provider, ids, CatalogSource.LIVE, selected_model=selected_model
        ),
        source=CatalogSource.LIVE,
    )


__all__ = [
    "EMPTY_CATALOG_ERROR",
    "MAX_SCANNED_MODELS",
    "build_model_options",
    "fallback_catalog",
    "fetch_gateway_model_ids",
    "filter_openai_chat_models",
    "list_live_model_ids",
    "resolve_model_catalog",
]
