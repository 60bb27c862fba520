import json

import httpx
import pytest

from readerai.client.document_store import SAVE_CHAT_ERROR, DocumentStore, JsonFileDocumentStore
from readerai.errors import PersistenceError
from readerai.schemas.chat import ChatMessage
from readerai.schemas.document import DocumentContext

MESSAGES = [ChatMessage.user("q"), ChatMessage.assistant("r")]


@pytest.mark.asyncio
async def test_save_chat_puts_history():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ok": True})

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport, base_url="http://reader.test") as client:
        await DocumentStore(client).save_chat("doc-1", MESSAGES)

    assert seen == {
        "method": "PUT",
        "path": "/api/articles/doc-1",
        "body": {
            "aiChat": [
                {"role": "user", "content": "q"},
                {"role": "assistant", "content": "r"},
            ]
        },
    }


@pytest.mark.asyncio
async def test_save_chat_failure_raises_persistence_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "db down"})

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport, base_url="http://reader.test") as client:
        with pytest.raises(PersistenceError) as exc_info:
            await DocumentStore(client).save_chat("doc-1", MESSAGES)

    assert str(exc_info.value) == SAVE_CHAT_ERROR


@pytest.mark.asyncio
async def test_json_file_store_round_trip(tmp_path):
    store = JsonFileDocumentStore(tmp_path / "documents.json")
    assert store.load("missing") == DocumentContext(id="missing")

    store.put(DocumentContext(id="doc-1", title="On Reading", content="<p>x</p>"))
    await store.save_chat("doc-1", MESSAGES)

    loaded = store.load("doc-1")
    assert loaded.title == "On Reading"
    assert loaded.ai_chat == MESSAGES

    raw = json.loads((tmp_path / "documents.json").read_text(encoding="utf-8"))
    assert raw["doc-1"]["aiChat"][1] == {"role": "assistant", "content": "r"}


def test_json_file_store_skips_invalid_history_entries(tmp_path):
    path = tmp_path / "documents.json"
    path.write_text(
        json.dumps(
            {
                "doc-1": {
                    "title": "T",
                    "aiChat": [
                        {"role": "user", "content": "ok"},
                        {"role": "system", "content": "no"},
                        {"role": "assistant"},
                        "junk",
                    ],
                }
            }
        ),
        encoding="utf-8",
    )

    assert JsonFileDocumentStore(path).load("doc-1").ai_chat == [ChatMessage.user("ok")]
