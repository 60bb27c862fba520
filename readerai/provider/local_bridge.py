"""
Local CLI bridge stream translator.

The bridge daemon (default http://127.0.0.1:3456) drives a locally
installed AI CLI and answers POST /api/chat with an event-stream whose
`data` fields carry `[DONE]`, `{"text": ...}` or `{"error": ...}`. This
module turns that into the plain incremental byte stream produced by the
cloud path.

Ordering rules:
- text events are forwarded as soon as their event is complete;
- an error event stops forwarding; once the text received before it has
  been read, the stream raises LocalBridgeError, even if the daemon
  keeps sending or closes cleanly afterwards;
- unparseable payloads are dropped (CLI tools emit keepalive noise);
- `[DONE]` is ignored; end of stream is the transport closing.
"""

from __future__ import annotations

import codecs
import json
from collections import deque
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import anyio
import httpx

from readerai.errors import LocalBridgeError, MAX_ERROR_BODY_CHARS, format_upstream_failure
from readerai.logging_config import logger
from readerai.provider.registry import LOCAL_MODEL_SUFFIX, Provider, local_tool_name
from readerai.schemas.chat import ChatMessage, messages_payload
from readerai.settings import Settings, settings as default_settings

DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class SSEEvent:
    event: Optional[str]
    data: str


class SSEEventParser:
    """
    Incremental text/event-stream framer.

    Text is accumulated until a blank line ends a record; `data:` lines of
    one record are re-joined with newlines, `event:` is kept, comment lines
    (leading ':') and unknown fields are ignored. A record still open when
    the transport closes is discarded.
    """

    def __init__(self) -> None:
        self.buffer = ""

    def feed(self, text: str) -> list[SSEEvent]:
        events: list[SSEEvent] = []
        self.buffer += text.replace("\r\n", "\n").replace("\r", "\n")

        while "\n\n" in self.buffer:
            raw_event, self.buffer = self.buffer.split("\n\n", 1)
            event = self._parse_record(raw_event)
            if event is not None:
                events.append(event)
        return events

    @staticmethod
    def _parse_record(raw_event: str) -> Optional[SSEEvent]:
        event_type: Optional[str] = None
        data_lines: list[str] = []
        for line in raw_event.split("\n"):
            if not line or line.startswith(":"):
                continue
            field, _, value = line.partition(":")
            if value.startswith(" "):
                value = value[1:]
            if field == "data":
                data_lines.append(value)
            elif field == "event":
                event_type = value

        if not data_lines:
            return None
        return SSEEvent(event=event_type, data="\n".join(data_lines))

    @property
    def has_partial_record(self) -> bool:
        return bool(self.buffer.strip())


class LocalBridgeStream:
    """
    Async byte iterator over one bridge response.

    Reads happen only when the consumer asks for the next chunk; closing
    the iterator (aclose / leaving `async with`) closes the HTTP response
    so the bridge can stop the CLI process.
    """

    def __init__(
        self,
        response: httpx.Response,
        *,
        idle_timeout: Optional[float] = None,
    ) -> None:
        self._response = response
        self._chunks = response.aiter_bytes()
        self._parser = SSEEventParser()
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending: deque[bytes] = deque()
        self._error: Optional[LocalBridgeError] = None
        self._idle_timeout = idle_timeout if idle_timeout and idle_timeout > 0 else None
        self._eof = False
        self._closed = False

    def __aiter__(self) -> "LocalBridgeStream":
        return self

    async def __aenter__(self) -> "LocalBridgeStream":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def __anext__(self) -> bytes:
        while True:
            if self._pending:
                return self._pending.popleft()
            if self._error is not None:
                error, self._error = self._error, None
                self._eof = True
                await self.aclose()
                raise error
            if self._eof or self._closed:
                await self.aclose()
                raise StopAsyncIteration

            chunk = await self._read_chunk()
            if chunk is None:
                self._finish()
            else:
                self._consume(self._decoder.decode(chunk))

    async def _read_chunk(self) -> Optional[bytes]:
        try:
            if self._idle_timeout is None:
                return await self._chunks.__anext__()
            with anyio.fail_after(self._idle_timeout):
                return await self._chunks.__anext__()
        except StopAsyncIteration:
            return None
        except TimeoutError:
            await self.aclose()
            raise LocalBridgeError(
                f"Local CLI bridge sent no data for {self._idle_timeout:g}s"
            ) from None
        except httpx.HTTPError as exc:
            await self.aclose()
            raise LocalBridgeError(f"Local CLI bridge connection failed: {exc}") from exc

    def _finish(self) -> None:
        self._eof = True
        tail = self._decoder.decode(b"", final=True)
        if tail:
            self._consume(tail)
        if self._parser.has_partial_record:
            logger.debug("local_bridge: dropping unterminated trailing event")

    def _consume(self, text: str) -> None:
        for event in self._parser.feed(text):
            if self._error is not None:
                # Nothing after an error event is forwarded.
                return
            self._handle_event(event)

    def _handle_event(self, event: SSEEvent) -> None:
        data = event.data.strip()
        if not data or data == DONE_SENTINEL:
            return

        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.debug("local_bridge: ignoring malformed event payload %r", data[:80])
            return
        if not isinstance(payload, dict):
            return

        error = payload.get("error")
        if error:
            message = error if isinstance(error, str) else json.dumps(error, ensure_ascii=False)
            logger.warning("local_bridge: error event from CLI bridge: %s", message)
            self._error = LocalBridgeError(message)
            return

        text = payload.get("text")
        if isinstance(text, str) and text:
            self._pending.append(text.encode("utf-8"))

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._response.aclose()


async def _read_error_body(response: httpx.Response) -> str:
    """Read at most a few hundred characters of a failed response."""
    limit = MAX_ERROR_BODY_CHARS * 4
    collected = bytearray()
    try:
        async for chunk in response.aiter_bytes():
            collected.extend(chunk)
            if len(collected) >= limit:
                break
    except httpx.HTTPError:
        pass
    finally:
        await response.aclose()
    return collected[:limit].decode("utf-8", errors="replace").strip()


def build_bridge_payload(
    local_provider: Provider,
    model: str,
    messages: Sequence[ChatMessage],
    system_prompt: str,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "tool": local_tool_name(local_provider),
        "messages": messages_payload(messages),
        "systemPrompt": system_prompt,
    }
    # The synthetic "<tool>-local" id means "let the CLI pick".
    if model and not model.endswith(LOCAL_MODEL_SUFFIX):
        body["model"] = model
    return body


async def open_local_stream(
    client: httpx.AsyncClient,
    local_provider: Provider,
    model: str,
    messages: Sequence[ChatMessage],
    system_prompt: str,
    *,
    config: Settings | None = None,
) -> LocalBridgeStream:
    """
    POST the conversation to the bridge and return its translated stream.

    Raises LocalBridgeError when the bridge is unreachable or answers
    with a non-2xx status.
    """
    cfg = config or default_settings
    bridge_base = cfg.cli_bridge_url.rstrip("/")
    url = f"{bridge_base}/api/chat"
    body = build_bridge_payload(local_provider, model, messages, system_prompt)

    logger.info(
        "local_bridge: opening stream tool=%s model=%s messages=%d url=%s",
        body["tool"],
        body.get("model", "<cli default>"),
        len(messages),
        url,
    )

    request = client.build_request(
        "POST",
        url,
        json=body,
        headers={"Accept": "text/event-stream", "Cache-Control": "no-store"},
    )
    try:
        response = await client.send(request, stream=True)
    except httpx.HTTPError as exc:
        raise LocalBridgeError(f"Local CLI bridge unreachable at {bridge_base}: {exc}") from exc

    if not response.is_success:
        text = await _read_error_body(response)
        logger.warning(
            "local_bridge: bridge returned status=%s body=%r",
            response.status_code,
            text[:200],
        )
        raise LocalBridgeError(
            format_upstream_failure(response.status_code, text),
            status_code=response.status_code,
            text=text[:MAX_ERROR_BODY_CHARS],
        )

    return LocalBridgeStream(response, idle_timeout=cfg.local_bridge_idle_timeout)


__all__ = [
    "DONE_SENTINEL",
    "LocalBridgeStream",
    "SSEEvent",
    "SSEEventParser",
    "build_bridge_payload",
    "open_local_stream",
]
