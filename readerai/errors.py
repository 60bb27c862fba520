from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Error payload returned by every AI route:

        {"error": "API key is required for openai"}

    `error_id` is only set for unexpected server errors so the log line
    can be found again.
    """

    error: str = Field(..., description="Human-readable error message")
    error_id: Optional[str] = Field(default=None, description="Log correlation id")


class ReaderAIError(Exception):
    """Base class for errors raised by the completion gateway."""


class ConfigurationError(ReaderAIError):
    """
    The assistant configuration cannot be used as-is (e.g. a credentialed
    provider without an API key). Raised before any network call.
    """


class UpstreamError(ReaderAIError):
    """
    A provider, the gateway or the local bridge failed.

    status_code is None for connection-level failures.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        text: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.text = text


class LocalBridgeError(UpstreamError):
    """Non-2xx bridge response, an explicit error event, or a stalled stream."""


class PersistenceError(ReaderAIError):
    """Writing the chat history to the document store failed."""


MAX_ERROR_BODY_CHARS = 400


def format_upstream_failure(status_code: int, body: str) -> str:
    """`Provider returned 502: <first 400 chars of body>`."""
    if not body:
        return f"Provider returned {status_code}"
    return f"Provider returned {status_code}: {body[:MAX_ERROR_BODY_CHARS]}"


def http_error(
    status_code: int,
    message: str,
    *,
    details: Optional[Dict[str, Any]] = None,
) -> HTTPException:
    """
    Helper to create an HTTPException with a standardised error body.
    """
    payload: Dict[str, Any] = ErrorResponse(error=message).model_dump(exclude_none=True)
    if details:
        payload.update(details)
    return HTTPException(status_code=status_code, detail=payload)


def bad_request(message: str, *, details: Optional[Dict[str, Any]] = None) -> HTTPException:
    return http_error(status.HTTP_400_BAD_REQUEST, message, details=details)


def unauthorized(message: str = "Unauthorized") -> HTTPException:
    return http_error(status.HTTP_401_UNAUTHORIZED, message)


__all__ = [
    "ConfigurationError",
    "ErrorResponse",
    "LocalBridgeError",
    "PersistenceError",
    "ReaderAIError",
    "UpstreamError",
    "bad_request",
    "format_upstream_failure",
    "http_error",
    "unauthorized",
]
