"""
Client for the model discovery endpoint.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import httpx

from readerai.client.api_client import error_message_from_response
from readerai.logging_config import logger
from readerai.provider.registry import (
    fallback_models,
    include_selected_model,
    prioritize_stable_model_ids,
)
from readerai.schemas.chat import AIConfig
from readerai.schemas.model import CatalogSource

MODELS_PATH = "/api/ai/models"
DISCOVERY_ERROR = "Failed to load models"


@dataclass
class ModelOptions:
    model_ids: list[str] = field(default_factory=list)
    source: CatalogSource = CatalogSource.FALLBACK
    error: Optional[str] = None


class ModelOptionsClient:
    def __init__(self, client: httpx.AsyncClient, *, path: str = MODELS_PATH) -> None:
        self._client = client
        self._path = path

    def _fallback(self, config: AIConfig, error: Optional[str]) -> ModelOptions:
        ids = prioritize_stable_model_ids(fallback_models(config.provider))
        return ModelOptions(
            model_ids=include_selected_model(config.model, ids),
            source=CatalogSource.FALLBACK,
            error=error,
        )

    async def load(self, config: AIConfig) -> ModelOptions:
        """
        Ranked model ids for the config's provider with the selected model
        always present; failures degrade to the fallback list.
        """
        body = {
            "provider": config.provider.value,
            "apiKey": config.api_key,
            "model": config.model,
        }
        try:
            resp = await self._client.post(self._path, json=body)
        except httpx.HTTPError as exc:
            logger.warning("model_options: discovery request failed: %s", exc)
            return self._fallback(config, str(exc) or DISCOVERY_ERROR)

        if not resp.is_success:
            return self._fallback(
                config,
                error_message_from_response(
                    resp, f"Model fetch failed with status {resp.status_code}"
                ),
            )

        try:
            payload = resp.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            return self._fallback(config, DISCOVERY_ERROR)

        ids = [
            entry["id"]
            for entry in payload.get("models") or []
            if isinstance(entry, dict) and isinstance(entry.get("id"), str)
        ]
        ranked = prioritize_stable_model_ids(ids) or prioritize_stable_model_ids(
            fallback_models(config.provider)
        )
        try:
            source = CatalogSource(payload.get("source"))
        except ValueError:
            source = CatalogSource.FALLBACK
        error = payload.get("error")

        return ModelOptions(
            model_ids=include_selected_model(config.model, ranked),
            source=source,
            error=error if isinstance(error, str) else None,
        )


__all__ = ["DISCOVERY_ERROR", "MODELS_PATH", "ModelOptions", "ModelOptionsClient"]
