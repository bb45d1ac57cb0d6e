# src/lendgate/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .admin import router as admin_router
from .audit import router as audit_router
from .geo import router as geo_router
from .records import router as records_router

__all__ = [
    "admin_router",
    "audit_router",
    "geo_router",
    "records_router",
]
