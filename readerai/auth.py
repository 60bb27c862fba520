import hmac
from typing import Optional

from fastapi import Depends, Header

from readerai.deps import get_settings
from readerai.errors import unauthorized
from readerai.settings import Settings


def _extract_token(authorization: Optional[str], x_api_key: Optional[str]) -> Optional[str]:
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return token.strip()
    if x_api_key:
        return x_api_key.strip() or None
    return None


async def require_api_token(
    authorization: Optional[str] = Header(default=None),
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
    cfg: Settings = Depends(get_settings),
) -> Optional[str]:
    """
    Shared-token guard for the AI routes.

    Accepts `Authorization: Bearer <token>` or `X-API-Key: <token>`. When
    API_AUTH_TOKEN is unset the check is disabled and None is returned.
    """
    expected = cfg.api_auth_token
    if not expected:
        return None

    token = _extract_token(authorization, x_api_key)
    if token is None or not hmac.compare_digest(token.encode(), expected.encode()):
        raise unauthorized()
    return token
