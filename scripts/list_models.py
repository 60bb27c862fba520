#!/usr/bin/env python
"""
Print the model catalog readerai would offer for a provider.

- live discovery first, fallback list (plus the reason) otherwise
- API key from --api-key, the provider's usual environment variable, or
  an interactive prompt for providers that need one
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from getpass import getpass
from pathlib import Path

import httpx

# Allow running from the repository root: python scripts/list_models.py
_repo_root = Path(__file__).resolve().parents[1]
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

from readerai.provider.discovery import resolve_model_catalog  # noqa: E402
from readerai.provider.registry import Provider, requires_credential  # noqa: E402
from readerai.settings import settings  # noqa: E402

KEY_ENV_BY_PROVIDER = {
    Provider.OPENAI: "OPENAI_API_KEY",
    Provider.ANTHROPIC: "ANTHROPIC_API_KEY",
    Provider.GOOGLE: "GEMINI_API_KEY",
}


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Resolve and print the model catalog for one provider.",
    )
    parser.add_argument(
        "provider",
        nargs="?",
        default=Provider.GATEWAY.value,
        choices=[p.value for p in Provider],
        help="Provider tag (default: gateway)",
    )
    parser.add_argument("-k", "--api-key", help="Credential for the provider")
    parser.add_argument("-m", "--model", help="Currently selected model; always listed")
    parser.add_argument("--json", action="store_true", help="Print the raw JSON payload")
    return parser.parse_args()


def resolve_api_key(provider: Provider, explicit: str | None) -> str:
    if explicit:
        return explicit.strip()
    env_name = KEY_ENV_BY_PROVIDER.get(provider)
    if env_name and os.getenv(env_name):
        return os.environ[env_name].strip()
    if requires_credential(provider):
        return getpass(f"{provider.value} API key: ").strip()
    return ""


async def main() -> None:
    args = parse_args()
    provider = Provider(args.provider)
    api_key = resolve_api_key(provider, args.api_key)

    async with httpx.AsyncClient(timeout=settings.upstream_timeout) as client:
        catalog = await resolve_model_catalog(
            provider, api_key, client=client, selected_model=args.model
        )

    if args.json:
        payload = catalog.model_dump(mode="json", by_alias=True)
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return

    print(f"provider: {provider.value}  source: {catalog.source.value}")
    if catalog.error:
        print(f"note: {catalog.error}")
    for option in catalog.models:
        marker = "" if option.is_stable else "  (pre-release)"
        print(f"  {option.id}{marker}")


if __name__ == "__main__":
    asyncio.run(main())
