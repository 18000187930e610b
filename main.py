# ============================================================================
# RECIPE ENGINE - MAIN APPLICATION
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - FastAPI application entry point
# PURPOSE: Main application wiring services, orchestrator and routes
# CREATED: 19 OCT 2026
# ============================================================================
"""
Recipe Engine Main Application

FastAPI application that:
1. Provides HTTP API for recipes and executions
2. Runs recipe executions as background tasks
3. Manages the execution record store (PostgreSQL or in-memory)

Usage:
    uvicorn main:app --host 0.0.0.0 --port 8000
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from __version__ import __version__, BUILD_DATE, EPOCH
from core.config import get_defaults
from core.config.defaults import ArtifactBackend, StoreBackend
from repositories.database import init_pool, close_pool
from repositories.execution_repo import ExecutionRepository
from repositories.memory import InMemoryExecutionRepository
from services.recipe_service import RecipeService
from services.event_service import EventService
from services.artifact_store import BlobArtifactStore, InMemoryArtifactStore, LocalArtifactStore
from executors.demo import build_default_registry
from orchestrator import ActionDispatcher, RecipeOrchestrator
from api.routes import router, set_services

# Configure logging using our structured logging system
from core.logging import configure_logging, get_logger

configure_logging(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    json_output=os.environ.get("LOG_FORMAT", "").lower() == "json",
)
logger = get_logger(__name__)

# Global instances
_orchestrator: RecipeOrchestrator = None


async def build_repository():
    """Execution store selected by EXECUTION_STORE (postgres | memory)."""
    backend = get_defaults().database.backend
    if backend == StoreBackend.MEMORY.value:
        logger.warning("Using in-memory execution store; records are lost on restart")
        return InMemoryExecutionRepository()

    pool = await init_pool()
    logger.info("Database pool initialized")
    return ExecutionRepository(pool)


def build_artifact_store():
    """Artifact store selected by ARTIFACT_STORE (blob | local | memory)."""
    settings = get_defaults().artifacts
    if settings.backend == ArtifactBackend.BLOB.value:
        return BlobArtifactStore.from_defaults(settings)
    if settings.backend == ArtifactBackend.MEMORY.value:
        logger.warning("Using in-memory artifact store; artifacts are lost on restart")
        return InMemoryArtifactStore()

    logger.warning(f"Using local artifact store at {settings.local_dir}; URIs are only readable on this host")
    return LocalArtifactStore(settings.local_dir)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Initializes services on startup, cleans up on shutdown.
    """
    global _orchestrator

    logger.info(f"Starting Recipe Engine v{__version__} (Epoch {EPOCH}, Build {BUILD_DATE})")

    repository = await build_repository()

    # Recipe definitions
    recipe_service = RecipeService(os.environ.get("RECIPES_DIR", "./recipes"))
    count = recipe_service.load_all()
    logger.info(f"Loaded {count} recipes")

    # Progress events (in-process buffer)
    event_service = EventService()

    # Providers
    artifact_store = build_artifact_store()
    registry = build_default_registry(artifact_store=artifact_store)

    defaults = get_defaults()
    if defaults.execution.default_timeout_ms / 1000 >= defaults.polling.window_seconds:
        logger.warning(
            f"Default node timeout ({defaults.execution.default_timeout_ms}ms) is not shorter than "
            f"the client polling window ({defaults.polling.window_seconds:.0f}s)"
        )
    dispatcher = ActionDispatcher(registry, defaults=defaults.execution)
    _orchestrator = RecipeOrchestrator(recipe_service, repository, dispatcher, event_service)

    # Set services for API routes
    set_services(
        recipe_service=recipe_service,
        orchestrator=_orchestrator,
        event_service=event_service,
    )
    logger.info("Orchestrator ready")

    yield

    # Shutdown
    logger.info("Shutting down Recipe Engine...")

    await _orchestrator.stop()
    await close_pool()

    logger.info("Recipe Engine stopped")


# Create FastAPI app
app = FastAPI(
    title="Recipe Engine",
    description=f"Epoch {EPOCH} DAG recipe orchestration for generative pipelines",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router, prefix="/api/v1")


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Recipe Engine",
        "version": __version__,
        "epoch": EPOCH,
        "build_date": BUILD_DATE,
        "status": "running",
        "docs": "/docs",
    }


@app.get("/livez")
async def livez():
    """Liveness check."""
    return {"status": "ok"}


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=os.environ.get("RELOAD", "false").lower() == "true",
    )
