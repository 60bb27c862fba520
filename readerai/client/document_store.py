"""
Persistence of per-document chat histories.

`DocumentStore` writes through the articles API; `JsonFileDocumentStore`
keeps documents in a local JSON file and is used by the terminal chat.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Sequence

import anyio
import httpx

from readerai.errors import PersistenceError
from readerai.logging_config import logger
from readerai.schemas.chat import ChatMessage, messages_payload
from readerai.schemas.document import DocumentContext

SAVE_CHAT_ERROR = "Failed to save AI chat history"


class DocumentStore:
    def __init__(self, client: httpx.AsyncClient, *, articles_path: str = "/api/articles") -> None:
        self._client = client
        self._articles_path = articles_path.rstrip("/")

    async def save_chat(self, document_id: str, messages: Sequence[ChatMessage]) -> None:
        url = f"{self._articles_path}/{document_id}"
        try:
            resp = await self._client.put(url, json={"aiChat": messages_payload(messages)})
        except httpx.HTTPError as exc:
            raise PersistenceError(SAVE_CHAT_ERROR) from exc
        if not resp.is_success:
            logger.warning(
                "document_store: saving chat for %s failed with status=%s",
                document_id,
                resp.status_code,
            )
            raise PersistenceError(SAVE_CHAT_ERROR)

    __call__ = save_chat


class JsonFileDocumentStore:
    """
    {"<document id>": {<DocumentContext fields>}, ...} in one JSON file.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def _read_all(self) -> dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("document_store: %s is not valid JSON; starting empty", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def load(self, document_id: str) -> DocumentContext:
        record = self._read_all().get(document_id)
        if not isinstance(record, dict):
            return DocumentContext(id=document_id)
        return DocumentContext.model_validate({**record, "id": document_id})

    def put(self, document: DocumentContext) -> None:
        data = self._read_all()
        data[document.id] = document.model_dump(mode="json", by_alias=True, exclude={"id"})
        self._write_all(data)

    def _save_chat_sync(self, document_id: str, messages: Sequence[ChatMessage]) -> None:
        data = self._read_all()
        record = data.get(document_id)
        if not isinstance(record, dict):
            record = {}
        record["aiChat"] = messages_payload(messages)
        data[document_id] = record
        self._write_all(data)

    async def save_chat(self, document_id: str, messages: Sequence[ChatMessage]) -> None:
        try:
            await anyio.to_thread.run_sync(self._save_chat_sync, document_id, list(messages))
        except OSError as exc:
            raise PersistenceError(SAVE_CHAT_ERROR) from exc

    __call__ = save_chat


__all__ = ["DocumentStore", "JsonFileDocumentStore", "SAVE_CHAT_ERROR"]
