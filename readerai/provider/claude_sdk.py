"""
Claude/Anthropic official SDK wrapper.
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

# messages.create requires an explicit output budget.
DEFAULT_MAX_TOKENS = 4096


class ClaudeSDKError(UpstreamError):
    """Raised when the anthropic SDK is unavailable or returns an error."""


def _create_client(api_key: str, base_url: Optional[str]):
    try:
        from anthropic import Anthropic  # type: ignore
    except ImportError as exc:  # pragma: no cover - import guard
        raise ClaudeSDKError("anthropic is not installed; run: pip install anthropic") from exc

    try:
        kwargs: Dict[str, Any] = {"api_key": api_key, "max_retries": 0}
        if base_url:
            kwargs["base_url"] = str(base_url)
        return Anthropic(**kwargs)
    except Exception as exc:  # pragma: no cover - defensive
        raise ClaudeSDKError(f"Failed to initialise anthropic SDK: {exc}") from exc


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
    try:
        return json.loads(json.dumps(obj, default=str))
    except Exception:
        return {"text": str(obj)}


def _build_request(
    model_id: str, system: str, messages: Sequence[Dict[str, str]]
) -> Dict[str, Any]:
    request: Dict[str, Any] = {
        "model": model_id,
        "max_tokens": DEFAULT_MAX_TOKENS,
        "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
    }
    # The system prompt is a top-level field, not a message.
    if system:
        request["system"] = system
    return request


async def list_models(
    *,
    api_key: str,
    base_url: Optional[str],
    limit: int,
) -> List[Dict[str, Any]]:
    """
    Discover Anthropic models, following pagination up to `limit` entries.
    """
    client = _create_client(api_key, base_url)

    def _call():
        return [
            _response_to_dict(m)
            for m in itertools.islice(client.models.list(limit=100), limit)
        ]

    try:
        return await anyio.to_thread.run_sync(_call)
    except Exception as exc:
        raise ClaudeSDKError(
            f"anthropic model listing failed: {exc}",
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
    client = _create_client(api_key, base_url)
    request = _build_request(model_id, system, messages)

    def _call():
        return client.messages.create(**request)

    try:
        resp = await anyio.to_thread.run_sync(_call)
    except Exception as exc:
        raise ClaudeSDKError(
            f"anthropic call failed: {exc}",
            status_code=getattr(exc, "status_code", None),
        ) from exc

    payload = _response_to_dict(resp)
    return "".join(
        block.get("text", "")
        for block in payload.get("content") or []
        if isinstance(block, dict) and block.get("type") == "text"
    )


def _close_stream(stream: Any) -> None:
    try:
        stream.close()
    except Exception as exc:
        logger.debug("claude_sdk: closing stream failed: %s", exc)


async def stream_text(
    *,
    api_key: str,
    model_id: str,
    system: str,
    messages: Sequence[Dict[str, str]],
    base_url: Optional[str],
) -> AsyncIterator[str]:
    """
    messages.stream call consumed in a background thread; only text
    deltas are forwarded. Closing this iterator closes the message
    stream so a worker waiting on the network gives up right away.
    """
    client = _create_client(api_key, base_url)
    request = _build_request(model_id, system, messages)

    queue: SimpleQueue[Any] = SimpleQueue()
    sentinel = object()
    cancelled = threading.Event()
    opened: List[Any] = []

    def _worker():
        try:
            with client.messages.stream(**request) as stream:
                opened.append(stream)
                if cancelled.is_set():
                    return
                for text in stream.text_stream:
                    if cancelled.is_set():
                        break
                    queue.put(text)
        except Exception as exc:
            if not cancelled.is_set():
                queue.put(exc)
        finally:
            queue.put(sentinel)

    thread = threading.Thread(target=_worker, daemon=True)
    thread.start()

    try:
        while True:
            item = await anyio.to_thread.run_sync(queue.get, abandon_on_cancel=True)
            if item is sentinel:
                break
            if isinstance(item, Exception):
                raise ClaudeSDKError(
                    f"anthropic streaming call failed: {item}",
                    status_code=getattr(item, "status_code", None),
                ) from item
            if item:
                yield item
    finally:
        cancelled.set()
        for stream in opened:
            _close_stream(stream)
