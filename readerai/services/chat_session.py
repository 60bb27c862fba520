"""
Per-document chat session controller.

One `CompletionSession` owns the chat shown next to one open document:
it submits prompts, applies streamed output to the message list, commits
or discards the reply, hydrates from the persisted history and writes the
history back through a debounced persistence callback.

State machine:

    IDLE -> STREAMING -> COMMITTING -> IDLE
                      -> ABORTED    -> IDLE

While streaming, `messages` is always `pending_history + [assistant:
text so far]`; the pending snapshot already holds the new user turn.
Committing appends the final reply to the snapshot; aborting (error or
user stop) restores the snapshot, so partial replies never reach the
settled history.

All methods must be called from the event loop that runs the session.
"""

from __future__ import annotations

import asyncio
import contextlib
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional, Sequence

from readerai.client.config_store import ConfigStore
from readerai.logging_config import logger
from readerai.provider.registry import Provider, normalize_available_provider, provider_label
from readerai.schemas.chat import AIConfig, ChatMessage, StreamRequest, serialize_messages
from readerai.schemas.document import Annotation, DocumentContext
from readerai.services.system_prompt import build_system_prompt
from readerai.settings import Settings, settings as default_settings

SAVE_DEBOUNCE_SECONDS = 0.75
MAX_SAVED_MESSAGES = 80

StreamOpener = Callable[[StreamRequest], AsyncIterator[str]]
PersistHistory = Callable[[str, Sequence[ChatMessage]], Awaitable[None]]
UpdateListener = Callable[["CompletionSession"], None]


class SessionState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMMITTING = "committing"
    ABORTED = "aborted"


class SubmitOutcome(str, Enum):
    STARTED = "started"
    EMPTY = "empty"
    BUSY = "busy"
    NOT_READY = "not_ready"


def _saved_slice(messages: Sequence[ChatMessage]) -> list[ChatMessage]:
    return list(messages[-MAX_SAVED_MESSAGES:])


class CompletionSession:
    def __init__(
        self,
        document: DocumentContext,
        *,
        open_stream: StreamOpener,
        persist: PersistHistory,
        annotations: Sequence[Annotation] = (),
        config: Optional[AIConfig] = None,
        config_store: Optional[ConfigStore] = None,
        settings: Optional[Settings] = None,
        save_debounce: float = SAVE_DEBOUNCE_SECONDS,
        on_update: Optional[UpdateListener] = None,
        on_queued_prompt_handled: Optional[Callable[[], None]] = None,
    ) -> None:
        self._open_stream = open_stream
        self._persist = persist
        self._settings = settings or default_settings
        self._config_store = config_store
        self._save_debounce = save_debounce
        self._on_update = on_update
        self._on_queued_prompt_handled = on_queued_prompt_handled

        if config is not None:
            self.config = config
        elif config_store is not None:
            self.config = config_store.load(allow_local_providers=self.allow_local_providers)
        else:
            self.config = AIConfig()

        self.document = document
        self.annotations: list[Annotation] = list(annotations)
        self.messages: list[ChatMessage] = []
        self.input = ""
        self.error: Optional[str] = None
        self.show_settings = False
        self.state = SessionState.IDLE

        self._pending_history: Optional[list[ChatMessage]] = None
        self._last_persisted_signature = serialize_messages([])
        self._hydrated = False
        self._run_id = 0
        self._stream_task: Optional[asyncio.Task] = None
        self._save_timer: Optional[asyncio.Task] = None
        self._background: set[asyncio.Task] = set()
        self._last_queued_prompt: Optional[str] = None
        self._disposed = False

        self.sync_document(document)

    # -- read-only views --------------------------------------------------

    @property
    def allow_local_providers(self) -> bool:
        return self._settings.enable_local_cli

    @property
    def document_id(self) -> str:
        return self.document.id

    @property
    def is_streaming(self) -> bool:
        return self.state is SessionState.STREAMING

    @property
    def pending_history(self) -> Optional[list[ChatMessage]]:
        return None if self._pending_history is None else list(self._pending_history)

    @property
    def last_persisted_signature(self) -> str:
        return self._last_persisted_signature

    @property
    def settled_messages(self) -> list[ChatMessage]:
        """History without the in-flight reply."""
        if self._pending_history is not None:
            return list(self._pending_history)
        return list(self.messages)

    @property
    def has_unsynced_changes(self) -> bool:
        return (
            serialize_messages(_saved_slice(self.settled_messages))
            != self._last_persisted_signature
        )

    # -- notifications ----------------------------------------------------

    def _notify(self) -> None:
        if self._on_update is not None:
            self._on_update(self)

    def _set_messages(self, messages: Sequence[ChatMessage], *, settled: bool) -> None:
        self.messages = list(messages)
        self._notify()
        if settled:
            self._schedule_save()

    # -- hydration --------------------------------------------------------

    def sync_document(self, document: DocumentContext) -> bool:
        """
        Take in the latest persisted view of the document. Returns True
        when the session was re-initialised from the persisted history.

        Hydrates when the document identity changes (or on first use).
        For the same document a changed persisted history is only adopted
        when it differs from the local history and there are no local
        edits still waiting to be written; an identical history is an
        echo of our own earlier write.
        """
        previous_id = self.document.id if self._hydrated else None
        persisted = list(document.ai_chat)
        persisted_signature = serialize_messages(persisted)

        if self._hydrated and document.id == previous_id:
            self.document = document
            if persisted_signature == serialize_messages(_saved_slice(self.settled_messages)):
                return False
            if self.is_streaming or self.has_unsynced_changes:
                logger.debug(
                    "chat_session: keeping local history for %s; unsynced edits pending",
                    document.id,
                )
                return False
        elif self._hydrated and self.has_unsynced_changes:
            self._spawn(
                self._persist_quietly(previous_id, _saved_slice(self.settled_messages))
            )

        self._cancel_stream()
        self._cancel_save_timer()
        self.document = document
        self._pending_history = None
        self.state = SessionState.IDLE
        self.messages = persisted
        self._last_persisted_signature = serialize_messages(_saved_slice(persisted))
        self._hydrated = True
        logger.info(
            "chat_session: hydrated document=%s messages=%d", document.id, len(persisted)
        )
        self._notify()
        return True

    def set_annotations(self, annotations: Sequence[Annotation]) -> None:
        self.annotations = list(annotations)

    # -- configuration ----------------------------------------------------

    def update_config(self, config: AIConfig) -> None:
        self.config = config
        if self._config_store is not None:
            self._config_store.save(config)
        self._notify()

    def select_provider(self, provider: Provider | str) -> None:
        chosen = normalize_available_provider(provider, self.allow_local_providers)
        self.update_config(self.config.with_provider(chosen))

    def select_model(self, model: str) -> None:
        self.update_config(self.config.with_model(model))

    def set_api_key(self, api_key: str) -> None:
        self.update_config(self.config.with_api_key(api_key))

    def toggle_settings(self) -> None:
        self.show_settings = not self.show_settings
        self._notify()

    # -- submit / stream --------------------------------------------------

    def submit(self, text: Optional[str] = None) -> SubmitOutcome:
        """
        Send `text`, or the current input when text is None. Rejected
        submits keep the text in `input`.
        """
        is_queued = text is not None
        message = (text if is_queued else self.input).strip()

        if not message:
            return SubmitOutcome.EMPTY

        if self.is_streaming:
            if is_queued:
                self.input = message
            self._notify()
            return SubmitOutcome.BUSY

        if not self.config.is_ready:
            self.show_settings = True
            self.error = f"Add an API key for {provider_label(self.config.provider)}."
            if is_queued:
                self.input = message
            self._notify()
            return SubmitOutcome.NOT_READY

        loop = asyncio.get_running_loop()
        self.error = None
        if not is_queued:
            self.input = ""

        next_history = [*self.messages, ChatMessage.user(message)]
        self._pending_history = next_history
        self.state = SessionState.STREAMING
        self._set_messages([*next_history, ChatMessage.assistant("")], settled=False)

        request = StreamRequest(
            provider=self.config.provider,
            model=self.config.model,
            api_key=self.config.api_key,
            system_prompt=build_system_prompt(self.document, self.annotations),
            messages=next_history,
        )
        self._run_id += 1
        self._stream_task = loop.create_task(
            self._run_stream(self._run_id, request)
        )
        logger.info(
            "chat_session: stream started document=%s provider=%s model=%s history=%d",
            self.document_id,
            request.provider.value,
            request.model,
            len(next_history),
        )
        return SubmitOutcome.STARTED

    def apply_queued_prompt(self, prompt: Optional[str]) -> Optional[SubmitOutcome]:
        """
        Submit a prompt handed over by another component. The same value
        is consumed once, however often it is re-supplied; passing None
        means the caller cleared its queue.
        """
        if prompt is None:
            self._last_queued_prompt = None
            return None
        if prompt == self._last_queued_prompt:
            return None
        self._last_queued_prompt = prompt

        normalized = prompt.strip()
        outcome: Optional[SubmitOutcome] = None
        if normalized:
            self.input = ""
            outcome = self.submit(normalized)
        if self._on_queued_prompt_handled is not None:
            self._on_queued_prompt_handled()
        return outcome

    async def _run_stream(self, run_id: int, request: StreamRequest) -> None:
        accumulated = ""
        stream: Optional[AsyncIterator[str]] = None
        try:
            stream = self._open_stream(request)
            async for chunk in stream:
                if run_id != self._run_id or self._pending_history is None:
                    return
                accumulated += chunk
                self._set_messages(
                    [*self._pending_history, ChatMessage.assistant(accumulated)],
                    settled=False,
                )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning(
                "chat_session: stream failed document=%s: %s", self.document_id, exc
            )
            if run_id == self._run_id:
                self._abort(str(exc) or "AI request failed")
            return
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                with contextlib.suppress(Exception):
                    await aclose()

        if run_id == self._run_id:
            self._commit(accumulated)

    def _commit(self, text: str) -> None:
        pending = self._pending_history
        if pending is None:
            return
        self.state = SessionState.COMMITTING
        self._pending_history = None
        self._stream_task = None
        self._set_messages([*pending, ChatMessage.assistant(text)], settled=True)
        self.state = SessionState.IDLE
        self._notify()

    def _abort(self, error: Optional[str]) -> None:
        pending = self._pending_history
        self.state = SessionState.ABORTED
        self._pending_history = None
        self._stream_task = None
        if error:
            self.error = error
        if pending is not None:
            self._set_messages(pending, settled=True)
        self.state = SessionState.IDLE
        self._notify()

    def _cancel_stream(self) -> None:
        task = self._stream_task
        self._stream_task = None
        self._run_id += 1
        if task is not None and not task.done():
            task.cancel()

    def stop(self) -> bool:
        """Cancel the active reply; no error is recorded."""
        if not self.is_streaming:
            return False
        self._cancel_stream()
        self._abort(None)
        logger.info("chat_session: stream stopped by user document=%s", self.document_id)
        return True

    async def wait_idle(self) -> None:
        """
        Wait for the active reply to finish. Returns normally when the reply
        is stopped; cancelling the caller does not cancel the reply.
        """
        task = self._stream_task
        if task is None:
            return
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    def clear(self) -> None:
        if self.is_streaming:
            self.stop()
        self.error = None
        self._set_messages([], settled=True)

    # -- persistence ------------------------------------------------------

    def _spawn(self, coro: Awaitable[object]) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("chat_session: no running loop; dropping background write")
            close = getattr(coro, "close", None)
            if close is not None:
                close()
            return None
        task = loop.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _cancel_save_timer(self) -> None:
        if self._save_timer is not None:
            self._save_timer.cancel()
            self._save_timer = None

    def _schedule_save(self) -> None:
        if self._disposed or not self._hydrated:
            return
        self._cancel_save_timer()
        payload = _saved_slice(self.messages)
        signature = serialize_messages(payload)
        if signature == self._last_persisted_signature:
            return
        self._save_timer = self._spawn(self._save_after_delay(self.document_id, payload, signature))

    async def _save_after_delay(
        self, document_id: str, payload: list[ChatMessage], signature: str
    ) -> None:
        await asyncio.sleep(self._save_debounce)
        self._save_timer = None
        # The write runs on its own so a newer debounce cannot cancel it.
        self._spawn(self._write(document_id, payload, signature))

    async def _write(self, document_id: str, payload: list[ChatMessage], signature: str) -> bool:
        try:
            await self._persist(document_id, payload)
        except Exception as exc:
            logger.warning("chat_session: saving history for %s failed: %s", document_id, exc)
            if document_id == self.document_id and not self._disposed:
                self.error = str(exc) or "Failed to save chat"
                self._notify()
            return False
        if document_id == self.document_id:
            self._last_persisted_signature = signature
        logger.debug("chat_session: saved %d messages for %s", len(payload), document_id)
        return True

    async def flush(self) -> bool:
        """Write unsynced settled history now; returns False on failure."""
        self._cancel_save_timer()
        payload = _saved_slice(self.settled_messages)
        signature = serialize_messages(payload)
        if signature == self._last_persisted_signature:
            return True
        return await self._write(self.document_id, payload, signature)

    async def _persist_quietly(self, document_id: str, payload: list[ChatMessage]) -> None:
        try:
            await self._persist(document_id, payload)
        except Exception as exc:
            logger.debug("chat_session: best-effort save for %s failed: %s", document_id, exc)

    def dispose(self) -> Optional[asyncio.Task]:
        """
        Tear the session down without waiting. Unsynced history is
        written once in the background and failures are ignored. Returns
        that background task, if one was started.
        """
        if self._disposed:
            return None
        if self.is_streaming:
            self._cancel_stream()
            self._abort(None)
        self._cancel_save_timer()
        self._disposed = True

        if not self._hydrated or not self.has_unsynced_changes:
            return None
        return self._spawn(
            self._persist_quietly(self.document_id, _saved_slice(self.settled_messages))
        )


__all__ = [
    "MAX_SAVED_MESSAGES",
    "SAVE_DEBOUNCE_SECONDS",
    "CompletionSession",
    "PersistHistory",
    "SessionState",
    "StreamOpener",
    "SubmitOutcome",
]
