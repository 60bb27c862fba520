#!/usr/bin/env python
"""
Terminal chat against a running readerai server.

Documents are read from (and chat histories written to) a local JSON
file, so a conversation survives restarts the same way it would in the
reader UI. Commands:

  /provider <tag>   switch provider (model resets to its default)
  /model <id>       select a model
  /key              enter an API key
  /models           list models for the current provider
  /clear            clear the conversation
  /quit             save and exit
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from getpass import getpass
from pathlib import Path

import anyio

# Allow running from the repository root: python scripts/chat_cli.py
_repo_root = Path(__file__).resolve().parents[1]
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

from readerai.client.api_client import build_api_client  # noqa: E402
from readerai.client.chat_stream import ChatStreamClient  # noqa: E402
from readerai.client.config_store import ConfigStore, JsonKeyValueStore  # noqa: E402
from readerai.client.document_store import JsonFileDocumentStore  # noqa: E402
from readerai.client.model_options import ModelOptionsClient  # noqa: E402
from readerai.logging_config import setup_logging  # noqa: E402
from readerai.schemas.chat import ChatRole  # noqa: E402
from readerai.services.chat_session import CompletionSession, SubmitOutcome  # noqa: E402


class StreamPrinter:
    """Prints the in-flight assistant reply incrementally."""

    def __init__(self) -> None:
        self.printed = 0

    def __call__(self, session: CompletionSession) -> None:
        if not session.is_streaming or not session.messages:
            return
        last = session.messages[-1]
        if last.role != ChatRole.ASSISTANT.value:
            return
        delta = last.content[self.printed:]
        if delta:
            print(delta, end="", flush=True)
            self.printed = len(last.content)

    def reset(self) -> None:
        self.printed = 0


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Chat about a saved document in the terminal.")
    parser.add_argument("--server", default="http://127.0.0.1:8000", help="readerai base URL")
    parser.add_argument("--token", help="API_AUTH_TOKEN of the server, if set")
    parser.add_argument("--documents", default="documents.json", help="JSON document store")
    parser.add_argument("--config", default=".readerai-client.json", help="client settings file")
    parser.add_argument("document_id", help="Id of the document to chat about")
    return parser.parse_args()


async def _read_line(prompt: str) -> str:
    return await anyio.to_thread.run_sync(input, prompt)


async def await_reply(session: CompletionSession) -> None:
    """
    Wait for the streamed reply; Ctrl-C stops the reply, not the chat.

    asyncio.run delivers Ctrl-C as a cancellation of the main task on
    Python 3.11+, and as KeyboardInterrupt before that.
    """
    try:
        await session.wait_idle()
    except (KeyboardInterrupt, asyncio.CancelledError):
        session.stop()


async def _print_models(models_client: ModelOptionsClient, session: CompletionSession) -> None:
    options = await models_client.load(session.config)
    print(f"[{options.source.value}] models for {session.config.provider.value}:")
    for model_id in options.model_ids:
        marker = "*" if model_id == session.config.model else " "
        print(f" {marker} {model_id}")
    if options.error:
        print(f"note: {options.error}")


async def main() -> None:
    setup_logging()
    args = parse_args()

    documents = JsonFileDocumentStore(args.documents)
    document = documents.load(args.document_id)
    config_store = ConfigStore(JsonKeyValueStore(args.config))
    printer = StreamPrinter()

    async with build_api_client(args.server, auth_token=args.token) as client:
        models_client = ModelOptionsClient(client)
        session = CompletionSession(
            document,
            open_stream=ChatStreamClient(client).stream,
            persist=documents.save_chat,
            config_store=config_store,
            on_update=printer,
        )

        print(f"Chatting about {document.title or document.id} "
              f"({session.config.provider.value} / {session.config.model})")
        for message in session.messages:
            print(f"{message.role}> {message.content}")

        try:
            while True:
                line = (await _read_line("you> ")).strip()
                if not line:
                    continue
                if line == "/quit":
                    break
                if line == "/clear":
                    session.clear()
                    continue
                if line == "/key":
                    session.set_api_key(getpass("API key: ").strip())
                    continue
                if line == "/models":
                    await _print_models(models_client, session)
                    continue
                if line.startswith("/provider "):
                    session.select_provider(line.split(maxsplit=1)[1])
                    print(f"provider: {session.config.provider.value} model: {session.config.model}")
                    continue
                if line.startswith("/model "):
                    session.select_model(line.split(maxsplit=1)[1])
                    continue

                session.input = line
                printer.reset()
                outcome = session.submit()
                if outcome is not SubmitOutcome.STARTED:
                    print(f"[{outcome.value}] {session.error or ''}".rstrip())
                    continue
                print("assistant> ", end="", flush=True)
                await await_reply(session)
                print()
                if session.error:
                    print(f"error: {session.error}")
        except (EOFError, KeyboardInterrupt):
            print()
        finally:
            if not await session.flush():
                print(f"warning: {session.error}")
            session.dispose()


if __name__ == "__main__":
    asyncio.run(main())
