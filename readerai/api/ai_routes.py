from __future__ import annotations

import json
from typing import Any

import httpx
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, StreamingResponse

from readerai.auth import require_api_token
from readerai.deps import get_http_client, get_settings
from readerai.errors import ConfigurationError, ErrorResponse, bad_request
from readerai.logging_config import logger
from readerai.provider.discovery import fallback_catalog, resolve_model_catalog
from readerai.provider.registry import DEFAULT_PROVIDER, is_local_provider, normalize_provider
from readerai.schemas import (
    ChatRequest,
    ModelsRequest,
    ModelsResponse,
    SummarizeRequest,
    SummaryResponse,
)
from readerai.services.completion_stream import (
    TEXT_STREAM_HEADERS,
    open_completion_stream,
    prime_stream,
)
from readerai.services.request_normalizer import (
    LOCAL_CLI_DISABLED_ERROR,
    ensure_provider_usable,
    normalize_api_key,
    normalize_chat_request,
    normalize_text,
)
from readerai.services.summary_service import (
    generate_summary,
    normalize_summary_request,
    validate_summary_job,
)
from readerai.settings import Settings


router = APIRouter(
    prefix="/api/ai",
    tags=["ai"],
    dependencies=[Depends(require_api_token)],
)


async def _read_json_body(request: Request) -> dict[str, Any]:
    """Request body as a dict; missing or malformed JSON reads as {}."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return payload if isinstance(payload, dict) else {}


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(exclude_none=True),
    )


def _models_payload(models: ModelsResponse) -> dict[str, Any]:
    return models.model_dump(mode="json", by_alias=True, exclude_none=True)


@router.post("/chat")
async def chat(
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    cfg: Settings = Depends(get_settings),
):
    """
    Stream a chat reply as plain text. Failures before the first chunk
    are answered with a JSON error body instead of an empty stream.
    """
    body = ChatRequest.model_validate(await _read_json_body(request))
    stream_request = normalize_chat_request(body)

    if not stream_request.messages:
        raise bad_request("At least one message is required")
    try:
        ensure_provider_usable(stream_request.provider, stream_request.api_key, cfg)
    except ConfigurationError as exc:
        raise bad_request(str(exc)) from exc

    logger.info(
        "chat: provider=%s model=%s messages=%d system_prompt_chars=%d",
        stream_request.provider.value,
        stream_request.model,
        len(stream_request.messages),
        len(stream_request.system_prompt),
    )

    try:
        stream = await open_completion_stream(stream_request, client=client, config=cfg)
        primed = await prime_stream(stream)
    except Exception as exc:
        logger.exception("AI chat request failed")
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            str(exc) or "Failed to stream AI response",
        )

    return StreamingResponse(primed, headers=TEXT_STREAM_HEADERS)


@router.post("/models")
async def list_models(
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    cfg: Settings = Depends(get_settings),
):
    """
    Live model catalog for a provider, or its fallback list with the
    reason discovery failed.
    """
    body = ModelsRequest.model_validate(await _read_json_body(request))
    provider = normalize_provider(body.provider)
    api_key = normalize_api_key(body.api_key)
    selected_model = normalize_text(body.model, 180) or None

    if is_local_provider(provider) and not cfg.enable_local_cli:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_models_payload(fallback_catalog(DEFAULT_PROVIDER, LOCAL_CLI_DISABLED_ERROR)),
        )

    models = await resolve_model_catalog(
        provider,
        api_key,
        client=client,
        selected_model=selected_model,
        config=cfg,
    )
    return JSONResponse(content=_models_payload(models))


@router.post("/summarize", response_model=SummaryResponse)
async def summarize(
    request: Request,
    cfg: Settings = Depends(get_settings),
):
    body = SummarizeRequest.model_validate(await _read_json_body(request))
    job = normalize_summary_request(body)

    try:
        validate_summary_job(job, cfg)
    except ConfigurationError as exc:
        raise bad_request(str(exc)) from exc

    logger.info(
        "summarize: provider=%s model=%s length=%s content_chars=%d",
        job.provider.value,
        job.model,
        job.length.value,
        len(job.content),
    )

    try:
        result = await generate_summary(job, config=cfg)
    except Exception as exc:
        logger.exception("AI summary generation failed")
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            str(exc) or "Failed to generate summary",
        )

    return JSONResponse(content=result.model_dump(by_alias=True))


__all__ = ["router"]
