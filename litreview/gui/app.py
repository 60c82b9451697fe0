"""FastAPI JSON API over the catalog command/query interface."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from litreview import __version__
from litreview.config import Settings
from litreview.context import CatalogContext, build_context
from litreview.errors import (
    CatalogError,
    NetworkError,
    PreconditionFailed,
    QuotaExceeded,
    ValidationError,
)
from litreview.gui.routers import common, papers


def create_app(context: Optional[CatalogContext] = None) -> FastAPI:
    """Build the API app around *context* (built from ``.metadata`` when omitted)."""
    if context is None:
        context = build_context(Settings.load())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await app.state.context.catalog.load()
        yield
        if app.state.context.static_loader is not None:
            app.state.context.static_loader.clear_cache()

    app = FastAPI(title="litreview", version=__version__, lifespan=lifespan)
    app.state.context = context

    app.include_router(common.router)
    app.include_router(papers.router)

    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"error": str(exc), "fields": exc.fields})

    @app.exception_handler(QuotaExceeded)
    async def quota_exceeded(request: Request, exc: QuotaExceeded):
        return JSONResponse(
            status_code=507,
            content={
                "error": str(exc),
                "storage": request.app.state.context.catalog.storage_info(),
            },
        )

    @app.exception_handler(CatalogError)
    async def catalog_error(request: Request, exc: CatalogError):
        status = 400
        if isinstance(exc, PreconditionFailed):
            status = 412
        elif isinstance(exc, NetworkError):
            status = 502
        return JSONResponse(status_code=status, content={"error": str(exc)})

    return app
