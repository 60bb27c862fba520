"""
Helpers for calling Google Gemini via the official google-genai SDK.
"""

from __future__ import annotations

import itertools
import json
import threading
from queue import SimpleQueue
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Sequence

import anyio

from readerai.errors import UpstreamError
from readerai.logging_config import logger


class GoogleSDKError(UpstreamError):
    """Raised when the google-genai SDK is unavailable or returns an error."""


def _create_client(api_key: str, base_url: Optional[str]):
    try:
        from google import genai  # type: ignore
    except ImportError as exc:  # pragma: no cover - import guard
        raise GoogleSDKError(
            "google-genai is not installed; run: pip install google-genai"
        ) from exc

    try:
        # Some google-genai versions reject client_options; keep the minimal argument set.
        return genai.Client(api_key=api_key)
    except Exception as exc:  # pragma: no cover - defensive
        raise GoogleSDKError(f"Failed to initialise google-genai: {exc}") from exc


def _status_of(exc: BaseException) -> Optional[int]:
    code = getattr(exc, "code", None)
    return code if isinstance(code, int) else None


def _messages_to_contents(messages: Iterable[Dict[str, str]]) -> List[Dict[str, Any]]:
    """
    Convert chat messages into Gemini contents; Gemini names the
    assistant role "model".
    """
    contents: List[Dict[str, Any]] = []
    for msg in messages:
        role = "model" if msg.get("role") == "assistant" else "user"
        contents.append({"role": role, "parts": [{"text": msg.get("content") or ""}]})
    return contents


def _generation_config(system: str) -> Dict[str, Any]:
    return {"system_instruction": system} if system else {}


def _response_to_dict(obj: Any) -> Dict[str, Any]:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    for attr in ("to_dict", "model_dump", "dict"):
        fn = getattr(obj, attr, None)
        if callable(fn):
            try:
                return fn()
            except Exception:
                continue
    # google-genai objects often support .to_json(); fall back to that.
    to_json = getattr(obj, "to_json", None)
    if callable(to_json):
        try:
            return json.loads(to_json())
        except Exception:
            pass
    try:
        return json.loads(json.dumps(obj, default=str))
    except Exception:
        return {"text": str(obj)}


async def list_models(
    *,
    api_key: str,
    base_url: Optional[str],
    limit: int,
) -> List[Dict[str, Any]]:
    """
    Page through models.list, scanning at most `limit` entries.
    """
    client = _create_client(api_key, base_url)

    def _call():
        pager = client.models.list(config={"page_size": 100})
        return [_response_to_dict(item) for item in itertools.islice(pager, limit)]

    try:
        return await anyio.to_thread.run_sync(_call)
    except Exception as exc:
        raise GoogleSDKError(
            f"google-genai model listing failed: {exc}", status_code=_status_of(exc)
        ) from exc


async def generate_text(
    *,
    api_key: str,
    model_id: str,
    system: str,
    messages: Sequence[Dict[str, str]],
    base_url: Optional[str],
) -> str:
    client = _create_client(api_key, base_url)
    contents = _messages_to_contents(messages)

    def _call():
        return client.models.generate_content(
            model=model_id, contents=contents, config=_generation_config(system)
        )

    try:
        response = await anyio.to_thread.run_sync(_call)
    except Exception as exc:
        raise GoogleSDKError(
            f"google-genai call failed: {exc}", status_code=_status_of(exc)
        ) from exc

    return getattr(response, "text", None) or ""


def _close_client(client: Any) -> None:
    try:
        client.close()
    except Exception as exc:
        logger.debug("google_sdk: closing client failed: %s", exc)


async def stream_text(
    *,
    api_key: str,
    model_id: str,
    system: str,
    messages: Sequence[Dict[str, str]],
    base_url: Optional[str],
) -> AsyncIterator[str]:
    """
    generate_content_stream consumed in a background thread; chunks are
    handed back to the async side through a queue.

    The response generator cannot be closed from another thread while it
    is blocked, so leaving early closes the per-call client instead,
    which drops its HTTP connections and fails the pending read.
    """
    client = _create_client(api_key, base_url)
    contents = _messages_to_contents(messages)

    queue: SimpleQueue[Any] = SimpleQueue()
    sentinel = object()
    cancelled = threading.Event()

    def _worker():
        responses = None
        try:
            responses = client.models.generate_content_stream(
                model=model_id, contents=contents, config=_generation_config(system)
            )
            for part in responses:
                if cancelled.is_set():
                    break
                queue.put(part)
        except Exception as exc:
            if not cancelled.is_set():
                queue.put(exc)
        finally:
            if responses is not None:
                responses.close()
            queue.put(sentinel)

    thread = threading.Thread(target=_worker, daemon=True)
    thread.start()

    finished = False
    try:
        while True:
            item = await anyio.to_thread.run_sync(queue.get, abandon_on_cancel=True)
            if item is sentinel:
                finished = True
                break
            if isinstance(item, Exception):
                raise GoogleSDKError(
                    f"google-genai streaming call failed: {item}",
                    status_code=_status_of(item),
                ) from item
            text = getattr(item, "text", None)
            if text:
                yield text
    finally:
        cancelled.set()
        if not finished:
            _close_client(client)
