"""Main FastAPI application for componentd daemon.

This module creates and configures the FastAPI application that exposes
the component catalog via REST API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from component_library.cache.orchestrator import create_orchestrator
from component_library.config.loader import load_config

from .routers import cache_router
from .routers import components_router
from .routers import status_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Builds the orchestrator on startup unless one was injected on app.state,
    and closes it on shutdown.

    Args:
        app: FastAPI application instance
    """
    # Startup
    orchestrator = getattr(app.state, "orchestrator", None)
    owned = orchestrator is None
    if owned:
        config = load_config()
        logging.getLogger().setLevel(config.log_level.upper())
        logger.info(f"Starting componentd daemon on {config.host}:{config.port}")
        logger.info(f"Configured sources: {[source.name for source in config.component_sources]}")

        orchestrator = create_orchestrator(config)
        app.state.orchestrator = orchestrator

    try:
        await orchestrator.initialize()
    except Exception as e:
        logger.error(f"Failed to initialize component catalog: {e}")
        # Don't fail startup, serve what is cached

    yield

    # Shutdown
    logger.info("Shutting down componentd daemon")
    if owned:
        await orchestrator.close()
        app.state.orchestrator = None


# Create FastAPI application
app = FastAPI(
    title="componentd",
    description="REST API daemon for the GitLab CI/CD component catalog",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(components_router)
app.include_router(cache_router)
app.include_router(status_router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint.

    Returns:
        Welcome message with API information
    """
    return {
        "name": "componentd",
        "version": "0.1.0",
        "description": "REST API daemon for the GitLab CI/CD component catalog",
        "docs": "/docs",
        "openapi": "/openapi.json",
    }
