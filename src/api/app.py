"""FastAPI application factory."""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.media_core.errors import AnalysisError, ToolError

from .errors import ArtifactNotFoundError, MediaFetchError, StorageError
from .metrics import instrument_app, router as metrics_router
from .routers import health, media
from .settings import get_settings

LOGGER = logging.getLogger("clipsense.api")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _error(status_code: int, error: str, detail: str | None = None) -> JSONResponse:
    body = {"ok": False, "error": error}
    if detail:
        body["detail"] = detail
    return JSONResponse(status_code=status_code, content=body)


def create_app() -> FastAPI:
    settings = get_settings()
    _configure_logging(settings.log_level)

    app = FastAPI(title=settings.app_name, version=settings.version)
    app.include_router(health.router)
    app.include_router(media.router)
    app.include_router(metrics_router)
    instrument_app(app)

    @app.exception_handler(AnalysisError)
    async def _analysis_error(_: Request, exc: AnalysisError):
        return _error(502, str(exc), exc.excerpt or None)

    @app.exception_handler(ToolError)
    async def _tool_error(_: Request, exc: ToolError):
        LOGGER.error("ffmpeg failure: %s", exc)
        return _error(502, str(exc), exc.output or None)

    @app.exception_handler(MediaFetchError)
    async def _fetch_error(_: Request, exc: MediaFetchError):
        return _error(400, str(exc))

    @app.exception_handler(ArtifactNotFoundError)
    async def _artifact_missing(_: Request, exc: ArtifactNotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(StorageError)
    async def _storage_error(_: Request, exc: StorageError):
        LOGGER.error("storage failure: %s", exc)
        return _error(503, str(exc))

    return app


def serve() -> None:
    import uvicorn

    uvicorn.run(
        "src.api.app:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3000")),
    )
