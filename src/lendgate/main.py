# src/lendgate/main.py
"""Main entry point for the Lendgate application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from lendgate.api.v1 import admin_router, audit_router, geo_router, records_router
from lendgate.core.errors import GateError, ValidationError, sanitize_error
from lendgate.core.settings import settings
from lendgate.db.session import create_tables
from lendgate.services.geo_risk import close_http_geo_locator
from lendgate.services.rate_limit import close_redis_counter_store
from lendgate.services.scanning import close_virustotal_client

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

# Initialize FastAPI app
app = FastAPI(
    title="Lendgate API",
    description="Request gate for privileged loan CRM operations",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(admin_router, prefix="/api/v1")
app.include_router(audit_router, prefix="/api/v1")
app.include_router(records_router, prefix="/api/v1")
app.include_router(geo_router, prefix="/api/v1")


def _error_response(exc: BaseException) -> JSONResponse:
    error = sanitize_error(exc)
    return JSONResponse(status_code=error.status_code, content=error.body())


@app.exception_handler(GateError)
async def gate_error_handler(request: Request, exc: GateError) -> JSONResponse:
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    messages = [str(error.get("msg", "Invalid value")) for error in exc.errors()]
    return _error_response(ValidationError(messages))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return _error_response(exc)


@app.on_event("startup")
async def on_startup() -> None:
    if settings.create_tables_on_startup:
        create_tables()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    close_http_geo_locator()
    close_virustotal_client()
    close_redis_counter_store()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Request gate for privileged loan CRM operations",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("lendgate.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
