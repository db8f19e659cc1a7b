"""Shared dependency factories for FastAPI endpoints.

The orchestrator is built once by the application lifespan and kept on
app.state; endpoints receive it through get_orchestrator.
"""

from fastapi import HTTPException
from fastapi import Request

from component_library.cache.orchestrator import CacheOrchestrator


def get_orchestrator(request: Request) -> CacheOrchestrator:
    """Get the application's orchestrator.

    Returns:
        CacheOrchestrator instance

    Raises:
        HTTPException: 503 if the daemon hasn't finished starting
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Component catalog not initialized")
    return orchestrator
