"""
FastAPI application factory for the ContentDB store gateway.

This module creates the gateway app with:
- CORS configuration for the dashboard frontend
- Backing store lifecycle (built from settings unless injected)
- `{data, error}` envelopes for every error response
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .._version import __version__
from ..config import Settings, StorageBackend
from ..errors import (
    BusinessRuleError,
    CmsError,
    ConcurrentModificationError,
    NotFoundError,
    RecordDecodeError,
    TransportError,
)
from ..store import create_stores
from .routes import router

logger = logging.getLogger(__name__)


def error_status(exc: CmsError) -> int:
    """HTTP status for an engine error."""
    if isinstance(exc, ConcurrentModificationError):
        return 409
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, TransportError):
        return 503
    if isinstance(exc, (BusinessRuleError, RecordDecodeError)):
        return 422
    return 400


def envelope_error(status_code: int, error: dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"data": None, "error": error})


async def handle_cms_error(request: Request, exc: CmsError) -> JSONResponse:
    status_code = error_status(exc)
    if status_code >= 500:
        logger.error(f"Store failure: {exc.message}", extra={"path": request.url.path})
    return envelope_error(status_code, exc.to_dict())


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, dict) else {"code": "HTTP_ERROR", "message": str(exc.detail)}
    return envelope_error(exc.status_code, detail)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return envelope_error(
        400,
        {"code": "BAD_REQUEST", "message": "Invalid request", "details": {"errors": exc.errors()}},
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the backing store when none was injected."""
    owned = False
    if getattr(app.state, "store", None) is None:
        settings: Settings = app.state.settings
        if settings.storage_backend == StorageBackend.HTTP:
            raise RuntimeError("The store gateway cannot itself use the http storage backend")
        app.state.store, _ = create_stores(settings)
        owned = True
        logger.info(
            "Store gateway started",
            extra={"settings": settings.to_safe_dict()},
        )

    yield

    if owned:
        app.state.store = None


def create_app(store: Any = None, settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        store: Backing store serving both contracts; built from settings
            in the lifespan when omitted
        settings: Gateway settings (read from the environment when omitted)
    """
    settings = settings or Settings()

    app = FastAPI(
        title="ContentDB Store Gateway",
        description="Schema and content item storage for ContentDB clients.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "PUT", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.add_exception_handler(CmsError, handle_cms_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)

    app.include_router(router, prefix="/api/v1")

    @app.get("/health")
    async def health():
        return {"status": "healthy", "service": "contentdb-gateway", "version": __version__}

    return app


def main() -> None:
    """Run the gateway with uvicorn."""
    import uvicorn

    from ..logging_config import setup_logging

    settings = Settings()
    setup_logging(settings)
    uvicorn.run(create_app(settings=settings), host=settings.gateway_host, port=settings.gateway_port)
