"""API routers for componentd daemon.

This module contains FastAPI routers for all API endpoints.
"""

from .cache import router as cache_router
from .components import router as components_router
from .status import router as status_router

__all__ = [
    "cache_router",
    "components_router",
    "status_router",
]
