import asyncio

import pytest

from readerai.schemas.document import DocumentContext
from readerai.services.chat_session import CompletionSession
from scripts import chat_cli


async def _stalled_reply(request):
    yield "Partial "
    await asyncio.Event().wait()


async def _no_save(document_id, messages):
    return None


@pytest.mark.asyncio
async def test_interrupt_while_waiting_stops_reply():
    session = CompletionSession(
        DocumentContext.model_validate({"id": "doc-1", "title": "On Reading"}),
        open_stream=_stalled_reply,
        persist=_no_save,
        save_debounce=0.01,
    )

    session.input = "q"
    session.submit()
    waiter = asyncio.create_task(chat_cli.await_reply(session))
    await asyncio.sleep(0.01)
    assert session.messages[-1].content == "Partial "

    waiter.cancel()
    await waiter

    assert not session.is_streaming
    assert [(m.role, m.content) for m in session.messages] == [("user", "q")]
    assert session.error is None
    task = session.dispose()
    if task is not None:
        await task
