"""
Helpers for calling OpenAI (and the OpenAI-compatible routing gateway)
via the official Python SDK.

The signatures match google_sdk / claude_sdk so sdk_selector can dispatch
uniformly.
"""

from __future__ import annotations

import itertools
import json
import threading
from queue import SimpleQueue
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import anyio

from readerai.errors import UpstreamError
from readerai.logging_config import logger


class OpenAISDKError(UpstreamError):
    """Raised when the openai SDK is unavailable or returns an error."""


def _create_client(api_key: str, base_url: Optional[str]):
    try:
        from openai import OpenAI  # type: ignore
    except ImportError as exc:  # pragma: no cover - import guard
        raise OpenAISDKError("openai is not installed; run: pip install openai") from exc

    try:
        kwargs: Dict[str, Any] = {"api_key": api_key, "max_retries": 0}
        if base_url:
            kwargs["base_url"] = str(base_url)
        return OpenAI(**kwargs)
    except Exception as exc:  # pragma: no cover - defensive
        raise OpenAISDKError(f"Failed to initialise openai SDK: {exc}") from exc


def _response_to_dict(obj: Any) -> Dict[str, Any]:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    for attr in ("model_dump", "to_dict", "dict"):
        fn = getattr(obj, attr, None)
        if callable(fn):
            try:
                return fn()
            except Exception:
                continue
    to_json = getattr(obj, "model_dump_json", None)
    if callable(to_json):
        try:
            return json.loads(to_json())
        except Exception:
            pass
    try:
        return json.loads(json.dumps(obj, default=str))
    except Exception:
        return {"text": str(obj)}


def _build_messages(system: str, messages: Sequence[Dict[str, str]]) -> List[Dict[str, str]]:
    upstream: List[Dict[str, str]] = []
    if system:
        upstream.append({"role": "system", "content": system})
    upstream.extend({"role": m["role"], "content": m["content"]} for m in messages)
    return upstream


def _delta_text(chunk: Dict[str, Any]) -> str:
    choices = chunk.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    delta = choices[0].get("delta") or {}
    text = delta.get("content") if isinstance(delta, dict) else None
    return text if isinstance(text, str) else ""


async def list_models(
    *,
    api_key: str,
    base_url: Optional[str],
    limit: int,
) -> List[Dict[str, Any]]:
    """
    Page through the model listing, scanning at most `limit` entries.
    """
    client = _create_client(api_key, base_url)

    def _call():
        # Iterating the page object follows pagination cursors.
        return [_response_to_dict(m) for m in itertools.islice(client.models.list(), limit)]

    try:
        return await anyio.to_thread.run_sync(_call)
    except Exception as exc:
        raise OpenAISDKError(
            f"openai model listing failed: {exc}",
            status_code=getattr(exc, "status_code", None),
        ) from exc


async def generate_text(
    *,
    api_key: str,
    model_id: str,
    system: str,
    messages: Sequence[Dict[str, str]],
    base_url: Optional[str],
) -> str:
    """
    Non-streaming chat.completions call; returns the reply text.
    """
    client = _create_client(api_key, base_url)

    def _call():
        return client.chat.completions.create(
            model=model_id, messages=_build_messages(system, messages)
        )

    try:
        resp = await anyio.to_thread.run_sync(_call)
    except Exception as exc:
        raise OpenAISDKError(
            f"openai call failed: {exc}",
            status_code=getattr(exc, "status_code", None),
        ) from exc

    payload = _response_to_dict(resp)
    choices = payload.get("choices") or []
    if not choices:
        return ""
    message = choices[0].get("message") or {}
    return message.get("content") or ""


def _close_stream(stream: Any) -> None:
    try:
        stream.close()
    except Exception as exc:
        logger.debug("openai_sdk: closing stream failed: %s", exc)


async def stream_text(
    *,
    api_key: str,
    model_id: str,
    system: str,
    messages: Sequence[Dict[str, str]],
    base_url: Optional[str],
) -> AsyncIterator[str]:
    """
    Streaming chat.completions call. A background thread consumes the
    synchronous SDK stream and hands text deltas back through a queue.
    Closing or cancelling this iterator closes the HTTP response, which
    also unblocks a worker stuck waiting for the next chunk.
    """
    client = _create_client(api_key, base_url)

    queue: SimpleQueue[Any] = SimpleQueue()
    sentinel = object()
    cancelled = threading.Event()
    opened: List[Any] = []

    def _worker():
        stream = None
        try:
            stream = client.chat.completions.create(
                model=model_id,
                messages=_build_messages(system, messages),
                stream=True,
            )
            opened.append(stream)
            if cancelled.is_set():
                return
            for chunk in stream:
                if cancelled.is_set():
                    break
                queue.put(chunk)
        except Exception as exc:
            if not cancelled.is_set():
                queue.put(exc)
        finally:
            if stream is not None:
                _close_stream(stream)
            queue.put(sentinel)

    thread = threading.Thread(target=_worker, daemon=True)
    thread.start()

    try:
        while True:
            item = await anyio.to_thread.run_sync(queue.get, abandon_on_cancel=True)
            if item is sentinel:
                break
            if isinstance(item, Exception):
                raise OpenAISDKError(
                    f"openai streaming call failed: {item}",
                    status_code=getattr(item, "status_code", None),
                ) from item
            text = _delta_text(_response_to_dict(item))
            if text:
                yield text
    finally:
        cancelled.set()
        for stream in opened:
            _close_stream(stream)
