import httpx

from .http_client import get_shared_http_client
from .settings import Settings, settings


async def get_http_client() -> httpx.AsyncClient:
    """
    FastAPI dependency that provides the shared AsyncClient.

    Tests override this dependency with a client built on
    httpx.MockTransport.
    """
    return get_shared_http_client()


def get_settings() -> Settings:
    """
    FastAPI dependency returning the process settings; tests override it
    to toggle local CLI availability or the auth token.
    """
    return settings
