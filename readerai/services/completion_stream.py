"""
Uniform incremental byte streams over the cloud and local-bridge paths.
"""

from __future__ import annotations

from typing import AsyncIterator, Optional

import httpx

from readerai.logging_config import logger
from readerai.provider.local_bridge import open_local_stream
from readerai.provider.registry import is_local_provider
from readerai.provider.sdk_selector import resolve_language_model
from readerai.schemas.chat import StreamRequest
from readerai.settings import Settings

TEXT_STREAM_HEADERS = {
    "Content-Type": "text/plain; charset=utf-8",
    "Cache-Control": "no-cache, no-transform",
    "X-Accel-Buffering": "no",
}


async def _encode_text_stream(chunks: AsyncIterator[str]) -> AsyncIterator[bytes]:
    try:
        async for text in chunks:
            if text:
                yield text.encode("utf-8")
    finally:
        await _aclose(chunks)


async def _aclose(stream: object) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()


async def open_completion_stream(
    request: StreamRequest,
    *,
    client: httpx.AsyncClient,
    config: Settings,
) -> AsyncIterator[bytes]:
    """
    Local providers go through the CLI bridge, everything else through the
    vendor SDK driver resolved for the provider.
    """
    if is_local_provider(request.provider):
        return await open_local_stream(
            client,
            request.provider,
            request.model,
            request.messages,
            request.system_prompt,
            config=config,
        )

    handle = resolve_language_model(
        request.provider, request.model, request.api_key, config=config
    )
    return _encode_text_stream(
        handle.stream(system=request.system_prompt, messages=request.messages)
    )


async def _chain(first: Optional[bytes], stream: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    try:
        if first:
            yield first
        async for chunk in stream:
            yield chunk
    except Exception:
        logger.exception("chat: stream failed after the response started")
        raise
    finally:
        await _aclose(stream)


async def prime_stream(stream: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    """
    Pull the first chunk so failures before any output raise here, while
    the caller can still answer with an error status. Returns an iterator
    replaying that chunk followed by the rest of the stream.
    """
    try:
        first: Optional[bytes] = await stream.__anext__()
    except StopAsyncIteration:
        first = None
    except BaseException:
        await _aclose(stream)
        raise
    return _chain(first, stream)


__all__ = ["TEXT_STREAM_HEADERS", "open_completion_stream", "prime_stream"]
