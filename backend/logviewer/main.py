from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from logviewer.api.routes import router as api_router
from logviewer.core.config import settings
from logviewer.core.errors import (
    InvalidDeletePath,
    LogStoreError,
    NotFound,
    PermissionDenied,
    StoreUnavailable,
)
from logviewer.core.logging import configure_logging, get_logger
from logviewer.middleware import RequestTracingMiddleware, get_request_id
from logviewer.services.context import create_context

configure_logging(settings.log_level)
logger = get_logger("main")

_ERROR_STATUS = (
    (InvalidDeletePath, 400, "invalid_delete_path"),
    (PermissionDenied, 403, "permission_denied"),
    (NotFound, 404, "not_found"),
    (StoreUnavailable, 503, "store_unavailable"),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the store context once for the life of the process."""
    logger.info("Starting %s...", settings.app_title)
    app.state.log_context = create_context(settings)

    yield

    logger.info("Shutting down %s...", settings.app_title)
    await app.state.log_context.aclose()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.app_title,
    version=settings.app_version,
    description="Filter, page, group, export and delete operational logs",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.frontend_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestTracingMiddleware)


@app.exception_handler(LogStoreError)
async def store_error_handler(request: Request, exc: LogStoreError) -> JSONResponse:
    status_code, code = 503, "store_unavailable"
    for error_cls, error_status, error_code in _ERROR_STATUS:
        if isinstance(exc, error_cls):
            status_code, code = error_status, error_code
            break

    if status_code >= 500:
        logger.error("Store failure on %s: %s", request.url.path, exc)
    else:
        logger.warning("Store request rejected on %s: %s", request.url.path, exc)

    return JSONResponse(
        status_code=status_code,
        content={
            "detail": str(exc),
            "error": code,
            "path": exc.path,
            "requestId": get_request_id(request),
        },
    )


app.include_router(api_router)
