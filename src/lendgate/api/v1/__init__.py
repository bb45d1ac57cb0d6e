"""Version 1 API endpoints."""

from .endpoints import admin_router, audit_router, geo_router, records_router

__all__ = [
    "admin_router",
    "audit_router",
    "geo_router",
    "records_router",
]
