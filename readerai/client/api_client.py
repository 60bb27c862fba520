from __future__ import annotations

from typing import Optional

import httpx

DEFAULT_CLIENT_TIMEOUT = httpx.Timeout(30.0, read=None)


def build_api_client(
    base_url: str,
    *,
    auth_token: Optional[str] = None,
    timeout: httpx.Timeout | float = DEFAULT_CLIENT_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    AsyncClient bound to a readerai server. Reads have no timeout because
    chat replies stream for as long as the model keeps writing.
    """
    headers = {"Accept": "application/json"}
    if auth_token:
        headers["Authorization"] = f"Bearer {auth_token}"
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        headers=headers,
        timeout=timeout,
        transport=transport,
    )


def error_message_from_response(response: httpx.Response, default: str) -> str:
    """The `error` field of a JSON error body, else `default`."""
    try:
        payload = response.json()
    except ValueError:
        return default
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, str) and error.strip():
            return error
    return default


__all__ = ["DEFAULT_CLIENT_TIMEOUT", "build_api_client", "error_message_from_response"]
