"""
FastAPI application for the Data Preparedness Suite.
"""

from __future__ import annotations

import importlib.metadata
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from .config import get_settings
from .db.base import get_session_local, init_database
from .errors import DataPrepError
from .logging_config import bind_context, clear_context, configure_logging
from .primitives import generate_ulid
from .routes import ROUTERS
from .services.catalog import CatalogService

# Initialize structured logging
logger = structlog.get_logger()

settings = get_settings()


def _version() -> str:
    try:
        return importlib.metadata.version("dataprep-suite")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    configure_logging()
    logger.info("Starting Data Preparedness Suite", environment=settings.environment)

    try:
        await init_database()

        db = get_session_local()()
        try:
            CatalogService(db).initialize_standard_catalog()
        finally:
            db.close()

    except Exception as e:
        logger.error(f"Failed to start application: {e}")
        raise

    yield

    logger.info("Shutdown complete")


app = FastAPI(
    title="Data Preparedness Suite",
    description="Catalog, classify, map, validate and synthesize data sources",
    version=_version(),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Bind a request id to every log line emitted while handling a request."""
    request_id = request.headers.get("x-request-id") or generate_ulid()
    bind_context(request_id=request_id, path=request.url.path, method=request.method)
    started = time.perf_counter()
    try:
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        logger.info(
            "Request handled",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response
    finally:
        clear_context()


@app.exception_handler(DataPrepError)
async def dataprep_error_handler(request: Request, exc: DataPrepError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed", error=exc.code, message=exc.message)
    else:
        logger.warning("Request rejected", error=exc.code, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": {"error": "INTERNAL_ERROR", "message": str(exc)}},
    )


for router in ROUTERS:
    app.include_router(router, prefix="/api")


@app.get("/health", tags=["system"])
async def health() -> dict:
    """Basic health check endpoint."""
    return {"status": "ok"}


@app.get("/healthz", tags=["system"])
def healthz() -> dict:
    """Health check including a database round trip."""
    db_ok = True
    db = get_session_local()()
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("Database health check failed", error=str(e))
        db_ok = False
    finally:
        db.close()
    return {"ok": db_ok, "db": db_ok}


@app.get("/version", tags=["system"])
def version() -> dict[str, str]:
    """Return the version of the application."""
    return {"version": _version()}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
