"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.catalog import router as catalog_router
from routes.sessions import router as sessions_router
from routes.sync import router as sync_router

__all__ = [
    "catalog_router",
    "sessions_router",
    "sync_router",
]
