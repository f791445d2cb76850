"""API routes package."""

from filesync.routes.file_routes import router as file_router
from filesync.routes.sync_routes import router as sync_router

__all__ = ["file_router", "sync_router"]
