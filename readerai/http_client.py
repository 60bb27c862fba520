"""
Shared httpx client for upstream and local-bridge calls.

Streaming responses outlive the request handler that opened them, so the
client cannot be scoped to a single request; one lazily-created client is
shared by the routes and closed on application shutdown.
"""

from __future__ import annotations

from typing import Optional

import httpx

from .settings import settings

_http_client: Optional[httpx.AsyncClient] = None


def get_shared_http_client() -> httpx.AsyncClient:
    """
    Return a lazily-created global AsyncClient.
    """
    global _http_client
    if _http_client is None or _http_client.is_closed:
        _http_client = httpx.AsyncClient(timeout=settings.upstream_timeout)
    return _http_client


async def close_shared_http_client() -> None:
    global _http_client
    if _http_client is not None and not _http_client.is_closed:
        await _http_client.aclose()
    _http_client = None


__all__ = ["close_shared_http_client", "get_shared_http_client"]
