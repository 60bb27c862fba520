import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .api.ai_routes import router as ai_router
from .http_client import close_shared_http_client
from .logging_config import logger
from .settings import settings


class HealthResponse(BaseModel):
    status: str = "ok"


async def handle_http_error(request: Request, exc: HTTPException):
    """
    Return HTTPException details as the response body so AI routes answer
    with {"error": ...} rather than {"detail": {...}}.
    """
    detail = exc.detail if isinstance(exc.detail, dict) else {"error": str(exc.detail)}
    return JSONResponse(status_code=exc.status_code, content=detail, headers=exc.headers)


async def handle_unexpected_error(request: Request, exc: Exception):
    """
    Global handler: log with a correlation id and return a structured 500.
    """
    error_id = uuid.uuid4().hex
    logger.exception(
        "Unhandled error %s %s (error_id=%s)",
        request.method,
        request.url.path,
        error_id,
    )
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "error_id": error_id},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    - startup: report which optional integrations are active
    - shutdown: close the shared upstream HTTP client
    """
    logger.info(
        "readerai starting (environment=%s, local_cli=%s, bridge=%s, auth=%s)",
        settings.environment,
        settings.enable_local_cli,
        settings.cli_bridge_url,
        "on" if settings.api_auth_token else "off",
    )
    yield
    await close_shared_http_client()


def create_app() -> FastAPI:
    app = FastAPI(title="Reader AI", version="0.1.0", lifespan=lifespan)
    app.add_exception_handler(HTTPException, handle_http_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Basic request/response logging; request bodies carry API keys and
        are never logged.
        """
        client_host = request.client.host if request.client else "-"
        logger.info("HTTP %s %s from %s", request.method, request.url.path, client_host)
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Unhandled error while processing %s %s",
                request.method,
                request.url.path,
            )
            raise
        logger.info(
            "HTTP %s %s -> %s", request.method, request.url.path, response.status_code
        )
        return response

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse()

    app.include_router(ai_router)

    return app


__all__ = ["create_app", "handle_unexpected_error", "lifespan"]
