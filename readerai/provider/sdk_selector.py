"""
SDK driver table and language-model resolution.

Every cloud provider maps onto one vendor driver; the routing gateway
speaks the OpenAI dialect and reuses the openai driver with its own base
URL. Local CLI providers are not resolvable here: they stream through
provider.local_bridge instead.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Optional, Sequence

from readerai.errors import ConfigurationError
from readerai.logging_config import logger, mask_secret
from readerai.provider import claude_sdk, google_sdk, openai_sdk
from readerai.provider.registry import Provider, is_local_provider
from readerai.schemas.chat import ChatMessage, messages_payload
from readerai.settings import Settings, settings as default_settings


@dataclass(frozen=True)
class SDKDriver:
    name: str
    list_models: Callable[..., Awaitable[list[dict]]]
    generate_text: Callable[..., Awaitable[str]]
    stream_text: Callable[..., AsyncIterator[str]]


SDK_DRIVERS: dict[str, SDKDriver] = {}


def register_sdk_driver(vendor: str, driver: SDKDriver) -> None:
    SDK_DRIVERS[vendor] = driver


def list_registered_sdk_vendors() -> list[str]:
    return sorted(SDK_DRIVERS.keys())


def normalize_base_url(value: object) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text.rstrip("/")


@dataclass(frozen=True)
class LanguageModelHandle:
    """
    A configured (provider, model, credential) triple. Building one is
    pure configuration; credential or model problems surface only when
    generate()/stream() reach the vendor.
    """

    provider: Provider
    model_id: str
    api_key: str
    base_url: Optional[str]
    driver: SDKDriver

    async def generate(self, *, system: str, messages: Sequence[ChatMessage]) -> str:
        logger.info(
            "llm: generate provider=%s model=%s messages=%d",
            self.provider.value,
            self.model_id,
            len(messages),
        )
        return await self.driver.generate_text(
            api_key=self.api_key,
            model_id=self.model_id,
            system=system,
            messages=messages_payload(messages),
            base_url=self.base_url,
        )

    def stream(self, *, system: str, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        logger.info(
            "llm: stream provider=%s model=%s messages=%d",
            self.provider.value,
            self.model_id,
            len(messages),
        )
        return self.driver.stream_text(
            api_key=self.api_key,
            model_id=self.model_id,
            system=system,
            messages=messages_payload(messages),
            base_url=self.base_url,
        )


def _driver(vendor: str) -> SDKDriver:
    driver = SDK_DRIVERS.get(vendor)
    if driver is None:
        raise ConfigurationError(f"No SDK driver registered for {vendor}")
    return driver


def resolve_language_model(
    provider: Provider,
    model: str,
    api_key: str,
    *,
    config: Settings | None = None,
) -> LanguageModelHandle:
    """
    Build the handle for one cloud provider. The gateway falls back to the
    process-level AI_GATEWAY_API_KEY when the caller supplies no key.
    """
    cfg = config or default_settings

    if is_local_provider(provider):
        raise ConfigurationError(
            f"{provider.value} runs through the local CLI bridge and has no SDK handle"
        )

    if provider is Provider.GATEWAY:
        gateway_key = api_key or cfg.ai_gateway_api_key or ""
        handle = LanguageModelHandle(
            provider=provider,
            model_id=model,
            api_key=gateway_key,
            base_url=normalize_base_url(cfg.ai_gateway_base_url),
            driver=_driver("openai"),
        )
    elif provider is Provider.OPENAI:
        handle = LanguageModelHandle(provider, model, api_key, None, _driver("openai"))
    elif provider is Provider.ANTHROPIC:
        handle = LanguageModelHandle(provider, model, api_key, None, _driver("claude"))
    elif provider is Provider.GOOGLE:
        handle = LanguageModelHandle(provider, model, api_key, None, _driver("google"))
    else:  # pragma: no cover - exhaustive over Provider
        raise ConfigurationError(f"Unsupported provider {provider!r}")

    logger.debug(
        "llm: resolved provider=%s model=%s driver=%s key=%s",
        provider.value,
        model,
        handle.driver.name,
        mask_secret(handle.api_key),
    )
    return handle


def driver_for_provider(provider: Provider) -> SDKDriver | None:
    """Vendor driver used for model listing of a direct cloud provider."""
    return {
        Provider.OPENAI: SDK_DRIVERS.get("openai"),
        Provider.ANTHROPIC: SDK_DRIVERS.get("claude"),
        Provider.GOOGLE: SDK_DRIVERS.get("google"),
    }.get(provider)


register_sdk_driver(
    "openai",
    SDKDriver(
        name="openai",
        list_models=openai_sdk.list_models,
        generate_text=openai_sdk.generate_text,
        stream_text=openai_sdk.stream_text,
    ),
)
register_sdk_driver(
    "claude",
    SDKDriver(
        name="claude",
        list_models=claude_sdk.list_models,
        generate_text=claude_sdk.generate_text,
        stream_text=claude_sdk.stream_text,
    ),
)
register_sdk_driver(
    "google",
    SDKDriver(
        name="google",
        list_models=google_sdk.list_models,
        generate_text=google_sdk.generate_text,
        stream_text=google_sdk.stream_text,
    ),
)
