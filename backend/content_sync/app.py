"""FastAPI application setup for content-sync."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from content_sync.api.dependencies import get_app_settings, get_database, get_runner
from content_sync.api.routes_admin import router as admin_router
from content_sync.api.routes_content import router as content_router
from content_sync.api.routes_sync import router as sync_router
from content_sync.core.errors import (
    DocumentNotFoundError,
    DocumentValidationError,
    SlugConflictError,
    StorageError,
)
from content_sync.core.logging import configure_logging
from content_sync.models.dto import HealthResponse

configure_logging()

app = FastAPI(
    title="content-sync",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:5173",
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
    expose_headers=["X-Sync-Run-Id"],
)

app.include_router(sync_router, prefix="/api", tags=["sync"])
app.include_router(content_router, prefix="", tags=["content"])
app.include_router(admin_router, prefix="", tags=["admin"])


@app.exception_handler(DocumentNotFoundError)
async def _not_found(_request: Request, exc: DocumentNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(SlugConflictError)
async def _conflict(_request: Request, exc: SlugConflictError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(DocumentValidationError)
async def _invalid(_request: Request, exc: DocumentValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(StorageError)
async def _storage(_request: Request, exc: StorageError) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.on_event("startup")
async def startup() -> None:
    """Warm up core singletons on startup."""
    get_app_settings()
    get_database()
    get_runner()


@app.get("/health", response_model=HealthResponse, tags=["admin"])
def health() -> HealthResponse:
    """Liveness check; answers whether or not a sync session is running."""
    return HealthResponse(**get_runner().health())
