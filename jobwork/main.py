"""
FastAPI application: routers, error mapping and storage lifecycle.
"""
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jobwork.api import (
    admin, auth, companies, documents, notifications, orders, quotes, rfqs, skus,
)
from jobwork.core.config import settings
from jobwork.core.errors import DomainError
from jobwork.core.logging import get_logger, setup_logging
from jobwork.db.seed import prepare_storage
from jobwork.storage import Storage, build_storage

logger = get_logger(__name__)


def _field_name(loc) -> str:
    # Drop the "body"/"query"/"path" prefix FastAPI puts first
    parts = [str(p) for p in loc[1:]] if len(loc) > 1 else [str(p) for p in loc]
    return ".".join(parts)


def create_app(storage: Optional[Storage] = None) -> FastAPI:
    """
    Build the application.

    Passing ``storage`` skips building one from settings; the caller then
    owns its lifetime.
    """
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if getattr(app.state, "storage", None) is None:
            owned = build_storage(settings)
            prepare_storage(owned, settings)
            app.state.storage = owned
        logger.info(f"{settings.APP_NAME} started with {app.state.storage.backend_name} storage")
        yield
        if owned is not None:
            owned.close()

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)
    app.state.storage = None
    if storage is not None:
        prepare_storage(storage, settings)
        app.state.storage = storage

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ============= ERROR MAPPING =============

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        if exc.http_status >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.http_status, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = [
            {"field": _field_name(err.get("loc", ())), "message": err.get("msg", "Invalid value")}
            for err in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"error": "Validation failed", "details": details})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    # ============= ROUTES =============

    app.include_router(auth.router)
    app.include_router(auth.protected_router)
    app.include_router(skus.router)
    app.include_router(companies.router)
    app.include_router(rfqs.router)
    app.include_router(quotes.router)
    app.include_router(orders.router)
    app.include_router(documents.router)
    app.include_router(notifications.router)
    app.include_router(admin.router)

    @app.get("/health")
    async def health_check(request: Request):
        storage = request.app.state.storage
        return {
            "status": "ok",
            "version": settings.APP_VERSION,
            "storage": storage.backend_name if storage is not None else None,
        }

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("jobwork.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
