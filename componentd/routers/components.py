"""Thin HTTP wrapper around the component catalog.

Architecture: This router contains ONLY HTTP handling.
All business logic is in component_library.cache.orchestrator.
"""

import logging
from typing import Annotated

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import Query

from component_library.cache.orchestrator import CacheOrchestrator
from component_library.errors import AuthRequiredError
from component_library.errors import CatalogError
from component_library.models.components import DEFAULT_GITLAB_INSTANCE
from component_library.models.components import Component

from ..dependencies import get_orchestrator
from ..models import ComponentsResponse
from ..models import OperationResponse
from ..models import VersionsRequest
from ..models import VersionsResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/components", tags=["components"])


@router.get("", response_model=ComponentsResponse)
async def list_components(
    orchestrator: Annotated[CacheOrchestrator, Depends(get_orchestrator)],
) -> ComponentsResponse:
    """Get cached components, scheduling a refresh when they are stale."""
    try:
        components = await orchestrator.get_components()
        return ComponentsResponse(
            components=components,
            refresh_in_progress=orchestrator.refresh_in_progress,
            has_errors=orchestrator.has_errors(),
        )
    except Exception as exc:
        logger.error(f"Failed to list components: {exc}")
        raise HTTPException(status_code=500, detail="Internal server error") from exc


@router.post("/refresh", response_model=OperationResponse)
async def refresh_components(
    orchestrator: Annotated[CacheOrchestrator, Depends(get_orchestrator)],
    force: bool = Query(False, description="Refresh even if the cache is fresh"),
) -> OperationResponse:
    """Refresh components from every configured source."""
    try:
        if force:
            await orchestrator.force_refresh()
        else:
            await orchestrator.refresh_components()
        stats = orchestrator.get_cache_stats()
        return OperationResponse(
            status="refreshed",
            components_count=stats.components_count,
            source_errors=orchestrator.get_source_errors(),
        )
    except Exception as exc:
        logger.error(f"Failed to refresh components: {exc}")
        raise HTTPException(status_code=500, detail="Internal server error") from exc


@router.post("/versions", response_model=VersionsResponse)
async def get_component_versions(
    request: VersionsRequest,
    orchestrator: Annotated[CacheOrchestrator, Depends(get_orchestrator)],
) -> VersionsResponse:
    """List known versions of a component's project."""
    component = Component(
        name=request.name,
        source="",
        source_path=request.source_path,
        gitlab_instance=request.gitlab_instance,
        version=request.version,
        url="",
    )
    try:
        versions = await orchestrator.fetch_component_versions(component)
        return VersionsResponse(versions=versions)
    except Exception as exc:
        logger.error(f"Failed to fetch versions for {request.source_path}: {exc}")
        raise HTTPException(status_code=500, detail="Internal server error") from exc


@router.get("/version", response_model=Component)
async def get_component_version(
    orchestrator: Annotated[CacheOrchestrator, Depends(get_orchestrator)],
    name: str = Query(..., description="Component name"),
    path: str = Query(..., description="Project path"),
    version: str = Query(..., description="Version to fetch"),
    host: str = Query(DEFAULT_GITLAB_INSTANCE, description="GitLab host"),
) -> Component:
    """Get one component at a pinned version, fetching it on demand."""
    try:
        component = await orchestrator.fetch_specific_version(name, path, host, version)
    except AuthRequiredError as exc:
        logger.warning(f"Authentication required for {host}: {exc.message}")
        raise HTTPException(status_code=401, detail=exc.user_message) from exc
    except CatalogError as exc:
        logger.error(f"Failed to fetch {path}/{name}@{version}: {exc.message}")
        raise HTTPException(status_code=502, detail=exc.user_message) from exc
    except Exception as exc:
        logger.error(f"Failed to fetch {path}/{name}@{version}: {exc}")
        raise HTTPException(status_code=500, detail="Internal server error") from exc

    if component is None:
        raise HTTPException(status_code=404, detail=f"Component not found: {path}/{name}@{version}")
    return component
