"""Thin HTTP wrapper around catalog cache management.

Architecture: This router contains ONLY HTTP handling.
All business logic is in component_library.cache.
"""

import logging
from typing import Annotated

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException

from component_library.cache.models import OrchestratorStats
from component_library.cache.orchestrator import CacheOrchestrator

from ..dependencies import get_orchestrator
from ..models import OperationResponse
from ..models import SourceErrorsResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/cache", tags=["cache"])


# =============================================================================
# Status Endpoints
# =============================================================================


@router.get("/stats", response_model=OrchestratorStats)
async def get_cache_stats(
    orchestrator: Annotated[CacheOrchestrator, Depends(get_orchestrator)],
) -> OrchestratorStats:
    """Get catalog and typed cache statistics."""
    try:
        return orchestrator.get_cache_stats()
    except Exception as exc:
        logger.error(f"Failed to get cache stats: {exc}")
        raise HTTPException(status_code=500, detail="Internal server error") from exc


@router.get("/errors", response_model=SourceErrorsResponse)
async def get_source_errors(
    orchestrator: Annotated[CacheOrchestrator, Depends(get_orchestrator)],
) -> SourceErrorsResponse:
    """Get sources that failed during the last refresh."""
    return SourceErrorsResponse(errors=orchestrator.get_source_errors(), has_errors=orchestrator.has_errors())


# =============================================================================
# Update Endpoints
# =============================================================================


@router.post("/update", response_model=OperationResponse)
async def update_cache(
    orchestrator: Annotated[CacheOrchestrator, Depends(get_orchestrator)],
) -> OperationResponse:
    """Re-read every source from GitLab, bypassing cached catalogs."""
    try:
        await orchestrator.update_cache()
        return OperationResponse(
            status="updated",
            components_count=orchestrator.get_cache_stats().components_count,
            source_errors=orchestrator.get_source_errors(),
        )
    except Exception as exc:
        logger.error(f"Failed to update cache: {exc}")
        raise HTTPException(status_code=500, detail="Internal server error") from exc


@router.post("/reset", response_model=OperationResponse)
async def reset_cache(
    orchestrator: Annotated[CacheOrchestrator, Depends(get_orchestrator)],
) -> OperationResponse:
    """Clear cached components, versions, catalogs and errors."""
    try:
        await orchestrator.reset_cache()
        return OperationResponse(status="reset")
    except Exception as exc:
        logger.error(f"Failed to reset cache: {exc}")
        raise HTTPException(status_code=500, detail="Internal server error") from exc
