"""
Client for the streaming chat endpoint.
"""

from __future__ import annotations

from typing import AsyncIterator

import httpx

from readerai.client.api_client import error_message_from_response
from readerai.errors import UpstreamError
from readerai.logging_config import logger
from readerai.schemas.chat import StreamRequest

CHAT_PATH = "/api/ai/chat"
STREAM_START_ERROR = "Unable to start AI response stream"


class ChatStreamClient:
    """
    Opens one streaming reply per call. Closing the returned iterator
    closes the HTTP response, which cancels the reply server-side.
    """

    def __init__(self, client: httpx.AsyncClient, *, path: str = CHAT_PATH) -> None:
        self._client = client
        self._path = path

    async def stream(self, request: StreamRequest) -> AsyncIterator[str]:
        async with self._client.stream("POST", self._path, json=request.to_body()) as resp:
            if not resp.is_success:
                await resp.aread()
                message = error_message_from_response(resp, STREAM_START_ERROR)
                logger.warning(
                    "chat_stream: server refused stream status=%s error=%s",
                    resp.status_code,
                    message,
                )
                raise UpstreamError(message, status_code=resp.status_code, text=resp.text)

            async for text in resp.aiter_text():
                if text:
                    yield text

    __call__ = stream


__all__ = ["CHAT_PATH", "ChatStreamClient", "STREAM_START_ERROR"]
